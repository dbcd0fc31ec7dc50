"""Scheduler tick: run every due job schedule once and reschedule the successes.

There is no in-process timer. A tick is triggered from outside (the cron
endpoint or the ``teppen-jobs-tick`` CLI) and processes due schedules one at
a time, each in its own session.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teppen.config import Settings
from teppen.db.base import utcnow
from teppen.models.enums import TickItemStatus
from teppen.models.job import SchedulerTickResult, TickItem
from teppen.providers.registry import ProviderRegistry
from teppen.workers.base import JobHandler
from teppen.workers.gbp_bulk_review_sync import GBP_BULK_REVIEW_SYNC_JOB_KEY
from teppen.workers.job_runs import has_running_job_run
from teppen.workers.job_schedules import (
    list_due_job_schedules,
    normalize_cadence_for,
    update_job_schedule_timing,
)
from teppen.workers.registry import get_handler

logger = logging.getLogger(__name__)

SKIPPED_REASON = "すでに実行中のジョブがあるためスキップしました。"


async def run_scheduler_tick(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    registry: ProviderRegistry,
    now: datetime | None = None,
    limit_organizations: int | None = None,
    job_key: str = GBP_BULK_REVIEW_SYNC_JOB_KEY,
    handler: JobHandler | None = None,
) -> SchedulerTickResult:
    """Process due schedules for ``job_key`` once.

    Per schedule: a running run means ``skipped``; a handler failure (returned
    or raised) means ``error`` and leaves ``next_run_at`` alone so the schedule
    is due again next tick; a success means ``started`` and moves
    ``next_run_at`` to ``now + cadence``.
    """
    now = now or utcnow()
    limit = settings.scheduler_default_limit if limit_organizations is None else limit_organizations
    mock_mode = settings.provider_mock_mode

    handler = handler or get_handler(job_key)
    if handler is None:
        return SchedulerTickResult(
            ok=False, message=f"ジョブ {job_key} のハンドラが登録されていません。", mock_mode=mock_mode
        )

    async with session_factory() as session:
        due = await list_due_job_schedules(session, job_key, now=now, limit=limit)

    if not due.ok:
        logger.error("Scheduler tick aborted: %s", due.reason)
        return SchedulerTickResult(
            ok=False,
            message=due.reason or "スケジュールの取得に失敗しました。",
            mock_mode=mock_mode,
        )

    results: list[TickItem] = []
    started = skipped = errors = 0

    for schedule in due.schedules:
        org_id = schedule.organization_id
        try:
            async with session_factory() as session:
                if await has_running_job_run(session, org_id, schedule.job_key):
                    skipped += 1
                    results.append(
                        TickItem(organization_id=org_id, status=TickItemStatus.SKIPPED, reason=SKIPPED_REASON)
                    )
                    continue

                outcome = await handler.run(session, settings, registry, org_id, actor_user_id=None)
                if not outcome.ok:
                    errors += 1
                    results.append(
                        TickItem(
                            organization_id=org_id,
                            status=TickItemStatus.ERROR,
                            reason=outcome.reason or outcome.message,
                        )
                    )
                    continue

                cadence = normalize_cadence_for(schedule.cadence_minutes, settings)
                timing = await update_job_schedule_timing(
                    session,
                    org_id,
                    schedule.job_key,
                    next_run_at=now + timedelta(minutes=cadence),
                    last_enqueued_at=now,
                )
                await session.commit()
                if not timing.ok:
                    logger.warning("Could not reschedule %s/%s: %s", org_id, schedule.job_key, timing.reason)
                started += 1
                results.append(TickItem(organization_id=org_id, status=TickItemStatus.STARTED))
        except Exception as exc:
            # One organization's failure must not abort the tick
            logger.exception("Scheduled job %s failed for org %s", schedule.job_key, org_id)
            errors += 1
            results.append(
                TickItem(organization_id=org_id, status=TickItemStatus.ERROR, reason=str(exc) or type(exc).__name__)
            )

    logger.info(
        "Scheduler tick for %s: due=%d started=%d skipped=%d error=%d",
        job_key, len(due.schedules), started, skipped, errors,
    )
    return SchedulerTickResult(
        ok=True,
        message=f"対象 {len(due.schedules)} 件を処理しました。",
        due_count=len(due.schedules),
        started_count=started,
        skipped_count=skipped,
        error_count=errors,
        mock_mode=mock_mode,
        results=results,
    )
