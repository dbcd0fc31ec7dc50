"""Job schedule store: cadence, enablement and next-run timing per organization."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.db.base import as_utc, utcnow
from teppen.db.models.job_schedule import JobScheduleRow
from teppen.models.job import JobSchedule
from teppen.repositories.job_schedule_repo import JobScheduleRepository
from teppen.services.id_generator import generate_id

logger = logging.getLogger(__name__)

MISSING_TABLE_REASON = "job_schedules マイグレーションが未適用のため実行できません。"
MISSING_TABLE_SAVE_REASON = "job_schedules マイグレーションが未適用のため保存できません。"
MISSING_TABLE_COUNT_REASON = "job_schedules が未適用のため取得できません。"

# Postgres SQLSTATE for undefined_table
_UNDEFINED_TABLE = "42P01"


class DueSchedulesResult(BaseModel):
    ok: bool
    schedules: list[JobSchedule] = Field(default_factory=list)
    reason: str | None = None


class ScheduleWriteResult(BaseModel):
    ok: bool
    schedule: JobSchedule | None = None
    reason: str | None = None


class TimingUpdateResult(BaseModel):
    ok: bool
    reason: str | None = None


class ScheduleCountResult(BaseModel):
    count: int | None = None
    reason: str | None = None


def is_missing_table(exc: BaseException) -> bool:
    """True when a database error means the table has not been created."""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        if getattr(candidate, "pgcode", None) == _UNDEFINED_TABLE:
            return True
        if getattr(candidate, "sqlstate", None) == _UNDEFINED_TABLE:
            return True
    message = str(orig if orig is not None else exc).lower()
    return "no such table" in message or ("relation" in message and "does not exist" in message)


def normalize_cadence_minutes(
    value: int | None,
    minimum: int = 360,
    maximum: int = 1440,
    default: int = 1440,
) -> int:
    """Clamp a cadence into [minimum, maximum]; missing or non-positive → default.

    Applying it twice gives the same result as applying it once.
    """
    if value is None or value <= 0:
        value = default
    return max(minimum, min(int(value), maximum))


def normalize_cadence_for(value: int | None, settings: Settings) -> int:
    return normalize_cadence_minutes(
        value,
        minimum=settings.job_cadence_min_minutes,
        maximum=settings.job_cadence_max_minutes,
        default=settings.job_cadence_default_minutes,
    )


def to_schedule(row: JobScheduleRow) -> JobSchedule:
    return JobSchedule(
        id=row.id,
        organization_id=row.organization_id,
        job_key=row.job_key,
        enabled=row.enabled,
        cadence_minutes=row.cadence_minutes,
        next_run_at=as_utc(row.next_run_at),
        last_enqueued_at=as_utc(row.last_enqueued_at),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


async def get_job_schedule(
    session: AsyncSession, organization_id: str, job_key: str
) -> JobSchedule | None:
    row = await JobScheduleRepository(session).get_for(organization_id, job_key)
    return to_schedule(row) if row else None


async def list_due_job_schedules(
    session: AsyncSession,
    job_key: str,
    now: datetime | None = None,
    limit: int | None = None,
) -> DueSchedulesResult:
    """Enabled schedules with ``next_run_at <= now`` or never run, nulls first.

    Never raises for database failures: a missing table or any other query
    error comes back as ``ok=False`` with a reason.
    """
    now = now or utcnow()
    try:
        rows = await JobScheduleRepository(session).list_due(job_key, now, limit)
    except SQLAlchemyError as exc:
        await session.rollback()
        if is_missing_table(exc):
            logger.error("job_schedules table is missing")
            return DueSchedulesResult(ok=False, reason=MISSING_TABLE_REASON)
        logger.error("Listing due schedules for %s failed: %s", job_key, exc)
        return DueSchedulesResult(ok=False, reason="スケジュールの取得に失敗しました。")
    return DueSchedulesResult(ok=True, schedules=[to_schedule(row) for row in rows])


async def upsert_job_schedule(
    session: AsyncSession,
    settings: Settings,
    organization_id: str,
    job_key: str,
    enabled: bool,
    cadence_minutes: int | None,
    now: datetime | None = None,
) -> ScheduleWriteResult:
    """Create or replace the schedule for (organization, job key).

    Enabling sets ``next_run_at = now + cadence``; disabling clears it.
    """
    now = now or utcnow()
    cadence = normalize_cadence_for(cadence_minutes, settings)
    next_run_at = now + timedelta(minutes=cadence) if enabled else None

    repo = JobScheduleRepository(session)
    try:
        row = await repo.get_for(organization_id, job_key)
        if row is None:
            row = await repo.create(
                id=generate_id("sch_"),
                organization_id=organization_id,
                job_key=job_key,
                enabled=enabled,
                cadence_minutes=cadence,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            )
        else:
            row = await repo.update(
                row,
                enabled=enabled,
                cadence_minutes=cadence,
                next_run_at=next_run_at,
                updated_at=now,
            )
    except SQLAlchemyError as exc:
        await session.rollback()
        if is_missing_table(exc):
            return ScheduleWriteResult(ok=False, reason=MISSING_TABLE_SAVE_REASON)
        logger.error("Saving schedule %s/%s failed: %s", organization_id, job_key, exc)
        return ScheduleWriteResult(ok=False, reason="スケジュールの保存に失敗しました。")

    logger.info(
        "Schedule %s/%s saved (enabled=%s, cadence=%d)", organization_id, job_key, enabled, cadence
    )
    return ScheduleWriteResult(ok=True, schedule=to_schedule(row))


async def update_job_schedule_timing(
    session: AsyncSession,
    organization_id: str,
    job_key: str,
    next_run_at: datetime | None,
    last_enqueued_at: datetime | None,
) -> TimingUpdateResult:
    """Write the timing fields. Writing the same values twice is harmless."""
    repo = JobScheduleRepository(session)
    try:
        row = await repo.get_for(organization_id, job_key)
        if row is None:
            return TimingUpdateResult(ok=False, reason="スケジュールが見つかりません。")
        await repo.update(
            row,
            next_run_at=next_run_at,
            last_enqueued_at=last_enqueued_at,
            updated_at=utcnow(),
        )
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Updating timing for %s/%s failed: %s", organization_id, job_key, exc)
        return TimingUpdateResult(ok=False, reason="更新に失敗しました。")
    return TimingUpdateResult(ok=True)


async def count_enabled_job_schedules(session: AsyncSession, job_key: str) -> ScheduleCountResult:
    try:
        count = await JobScheduleRepository(session).count_enabled(job_key)
    except SQLAlchemyError as exc:
        await session.rollback()
        if is_missing_table(exc):
            return ScheduleCountResult(reason=MISSING_TABLE_COUNT_REASON)
        return ScheduleCountResult(reason="件数の取得に失敗しました。")
    return ScheduleCountResult(count=count)
