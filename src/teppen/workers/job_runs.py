"""Job run ledger.

``create_job_run`` is the atomic claim: the partial unique index
``uq_job_runs_running`` allows one ``running`` row per (organization, job
key), so a concurrent second claim fails with an integrity error instead of
starting a duplicate run.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.base import as_utc, utcnow
from teppen.db.models.job_run import JobRunItemRow, JobRunRow
from teppen.models.enums import JobRunStatus
from teppen.models.job import JobRun, JobRunItem, JobRunSummary
from teppen.repositories.job_run_repo import JobRunItemRepository, JobRunRepository
from teppen.services.id_generator import generate_id
from teppen.workers.job_schedules import is_missing_table

logger = logging.getLogger(__name__)

ALREADY_RUNNING_REASON = "すでに実行中のため開始できません。"
MISSING_TABLE_REASON = "job_runs マイグレーションが未適用のため実行できません。"


class JobRunClaim(BaseModel):
    ok: bool
    run_id: str | None = None
    reason: str | None = None


class JobRunItemInput(BaseModel):
    location_id: str | None = None
    status: JobRunStatus
    count: int | None = None
    error: dict[str, Any] | None = None


def to_job_run(row: JobRunRow) -> JobRun:
    return JobRun(
        id=row.id,
        organization_id=row.organization_id,
        job_key=row.job_key,
        status=JobRunStatus(row.status),
        started_at=as_utc(row.started_at),
        finished_at=as_utc(row.finished_at),
        summary=row.summary_json or {},
        error=row.error_json or {},
        actor_user_id=row.actor_user_id,
    )


def to_job_run_item(row: JobRunItemRow) -> JobRunItem:
    return JobRunItem(
        id=row.id,
        job_run_id=row.job_run_id,
        location_id=row.location_id,
        status=row.status,
        count=row.count,
        error=row.error_json or {},
    )


async def has_running_job_run(session: AsyncSession, organization_id: str, job_key: str) -> bool:
    return await JobRunRepository(session).has_running(organization_id, job_key)


async def create_job_run(
    session: AsyncSession,
    organization_id: str,
    job_key: str,
    actor_user_id: str | None = None,
) -> JobRunClaim:
    """Insert a ``running`` row and commit it so other workers see the claim."""
    run_id = generate_id("run_")
    row = JobRunRow(
        id=run_id,
        organization_id=organization_id,
        job_key=job_key,
        status=JobRunStatus.RUNNING.value,
        started_at=utcnow(),
        actor_user_id=actor_user_id,
        summary_json={},
        error_json={},
    )
    session.add(row)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if "foreign key" in str(exc.orig).lower():
            logger.error("Cannot start run for unknown organization %s", organization_id)
            return JobRunClaim(ok=False, reason="ジョブの開始に失敗しました。")
        logger.info("Run for %s/%s already in progress", organization_id, job_key)
        return JobRunClaim(ok=False, reason=ALREADY_RUNNING_REASON)
    except SQLAlchemyError as exc:
        await session.rollback()
        if is_missing_table(exc):
            return JobRunClaim(ok=False, reason=MISSING_TABLE_REASON)
        logger.error("Starting run for %s/%s failed: %s", organization_id, job_key, exc)
        return JobRunClaim(ok=False, reason="ジョブの開始に失敗しました。")

    logger.info("Claimed run %s for %s/%s", run_id, organization_id, job_key)
    return JobRunClaim(ok=True, run_id=run_id)


async def finalize_job_run(
    session: AsyncSession,
    run_id: str,
    status: JobRunStatus,
    summary: JobRunSummary,
    error: dict[str, Any] | None = None,
) -> None:
    repo = JobRunRepository(session)
    row = await repo.get(run_id)
    if row is None:
        logger.warning("Cannot finalize unknown run %s", run_id)
        return
    await repo.update(
        row,
        status=status.value,
        finished_at=utcnow(),
        summary_json=summary.model_dump(),
        error_json=error or {},
    )


async def insert_job_run_items(
    session: AsyncSession, run_id: str, items: list[JobRunItemInput]
) -> None:
    repo = JobRunItemRepository(session)
    for item in items:
        await repo.create(
            id=generate_id("jri_"),
            job_run_id=run_id,
            location_id=item.location_id,
            status=item.status.value,
            count=item.count,
            error_json=item.error or {},
        )


async def get_latest_job_run(
    session: AsyncSession, organization_id: str, job_key: str
) -> JobRun | None:
    row = await JobRunRepository(session).get_latest(organization_id, job_key)
    return to_job_run(row) if row else None


async def list_job_runs(
    session: AsyncSession, limit: int = 50, organization_id: str | None = None
) -> list[JobRun]:
    rows = await JobRunRepository(session).list_recent(limit=limit, organization_id=organization_id)
    return [to_job_run(row) for row in rows]


async def list_job_run_items(session: AsyncSession, run_id: str) -> list[JobRunItem]:
    rows = await JobRunItemRepository(session).list_by_run(run_id)
    return [to_job_run_item(row) for row in rows]
