"""Per-organization job schedule endpoints."""

from fastapi import APIRouter

from teppen.api.routes._lookup import require_organization
from teppen.dependencies import ActorUserId, AppSettings, DBSession
from teppen.errors.exceptions import ConfigurationError, NotFoundError
from teppen.models.job import JobScheduleUpdate
from teppen.services.audit_logs import write_audit_log
from teppen.workers.job_runs import get_latest_job_run
from teppen.workers.job_schedules import get_job_schedule, upsert_job_schedule

router = APIRouter()


@router.get("/organizations/{organization_id}/job-schedules/{job_key}")
async def read_job_schedule(organization_id: str, job_key: str, db: DBSession) -> dict:
    """Schedule plus the latest run for (organization, job key)."""
    await require_organization(db, organization_id)
    schedule = await get_job_schedule(db, organization_id, job_key)
    if schedule is None:
        raise NotFoundError("JobSchedule", f"{organization_id}/{job_key}")
    latest = await get_latest_job_run(db, organization_id, job_key)
    return {
        "schedule": schedule.to_json_dict(),
        "latestRun": latest.to_json_dict() if latest else None,
    }


@router.put("/organizations/{organization_id}/job-schedules/{job_key}")
async def save_job_schedule(
    organization_id: str,
    job_key: str,
    body: JobScheduleUpdate,
    db: DBSession,
    settings: AppSettings,
    actor_user_id: ActorUserId,
) -> dict:
    await require_organization(db, organization_id)
    result = await upsert_job_schedule(
        db, settings, organization_id, job_key, body.enabled, body.cadence_minutes
    )
    if not result.ok or result.schedule is None:
        raise ConfigurationError(result.reason or "スケジュールの保存に失敗しました。")

    await write_audit_log(
        db,
        action="reviews.bulk_sync_schedule_update",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="job_schedule",
        target_id=result.schedule.id,
        metadata={
            "job_key": job_key,
            "enabled": result.schedule.enabled,
            "cadence_minutes": result.schedule.cadence_minutes,
        },
    )
    await db.commit()
    return result.schedule.to_json_dict()
