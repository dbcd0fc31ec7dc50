"""Scheduler tick tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from teppen.db.base import as_utc
from teppen.db.models.job_run import JobRunRow
from teppen.db.models.job_schedule import JobScheduleRow
from teppen.models.enums import JobRunStatus, ProviderType, TickItemStatus
from teppen.workers.base import JobHandler, JobResult
from teppen.workers.gbp_bulk_review_sync import GBP_BULK_REVIEW_SYNC_JOB_KEY
from teppen.workers.job_runs import list_job_runs
from teppen.workers.job_schedules import MISSING_TABLE_REASON
from teppen.workers.scheduler import SKIPPED_REASON, run_scheduler_tick

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingHandler(JobHandler):
    job_key = GBP_BULK_REVIEW_SYNC_JOB_KEY

    def __init__(self, result: JobResult | None = None, error: Exception | None = None):
        self.result = result or JobResult(ok=True, message="ok")
        self.error = error
        self.calls: list[str] = []

    async def run(self, session, settings, registry, organization_id, actor_user_id=None):
        self.calls.append(organization_id)
        if self.error is not None:
            raise self.error
        return self.result


async def add_schedule(session, org_id, next_run_at=T0, cadence=360, enabled=True):
    session.add(
        JobScheduleRow(
            id=f"sch_{org_id}",
            organization_id=org_id,
            job_key=GBP_BULK_REVIEW_SYNC_JOB_KEY,
            enabled=enabled,
            cadence_minutes=cadence,
            next_run_at=next_run_at,
        )
    )
    await session.commit()


async def load_schedule(session_factory, org_id) -> JobScheduleRow:
    async with session_factory() as session:
        return await session.get(JobScheduleRow, f"sch_{org_id}")


@pytest.mark.asyncio
async def test_tick_starts_due_schedule_and_moves_next_run(session_factory, settings, registry, seed_org):
    """org-1 due at T with a 360 minute cadence is rescheduled to T+6h."""
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await add_schedule(session, "org-1")

    handler = RecordingHandler()
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, handler=handler)

    assert result.ok is True
    assert result.due_count == 1
    assert result.started_count == 1
    assert result.skipped_count == 0
    assert result.error_count == 0
    assert result.results[0].status == TickItemStatus.STARTED
    assert handler.calls == ["org-1"]

    row = await load_schedule(session_factory, "org-1")
    assert as_utc(row.next_run_at) == datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)
    assert as_utc(row.last_enqueued_at) == T0


@pytest.mark.asyncio
async def test_tick_skips_when_run_in_progress(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await add_schedule(session, "org-1")
        session.add(
            JobRunRow(
                id="run_existing",
                organization_id="org-1",
                job_key=GBP_BULK_REVIEW_SYNC_JOB_KEY,
                status="running",
                started_at=T0,
                summary_json={},
                error_json={},
            )
        )
        await session.commit()

    handler = RecordingHandler()
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, handler=handler)

    assert result.ok is True
    assert result.skipped_count == 1
    assert result.started_count == 0
    assert result.results[0].reason == SKIPPED_REASON
    assert handler.calls == []

    row = await load_schedule(session_factory, "org-1")
    assert as_utc(row.next_run_at) == T0


@pytest.mark.asyncio
async def test_handler_failure_leaves_next_run_untouched(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await add_schedule(session, "org-1")

    handler = RecordingHandler(result=JobResult(ok=False, message="failed", reason="すでに実行中のため開始できません。"))
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, handler=handler)

    assert result.ok is True
    assert result.error_count == 1
    assert result.results[0].status == TickItemStatus.ERROR
    assert result.results[0].reason == "すでに実行中のため開始できません。"

    row = await load_schedule(session_factory, "org-1")
    assert as_utc(row.next_run_at) == T0
    assert row.last_enqueued_at is None


@pytest.mark.asyncio
async def test_raised_error_is_isolated_per_organization(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await seed_org(session, "org-2")
        await add_schedule(session, "org-1", next_run_at=T0 - timedelta(hours=1))
        await add_schedule(session, "org-2", next_run_at=T0)

    class FlakyHandler(RecordingHandler):
        async def run(self, session, settings, registry, organization_id, actor_user_id=None):
            self.calls.append(organization_id)
            if organization_id == "org-1":
                raise RuntimeError("boom")
            return JobResult(ok=True)

    handler = FlakyHandler()
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, handler=handler)

    assert result.ok is True
    assert handler.calls == ["org-1", "org-2"]
    assert result.error_count == 1
    assert result.started_count == 1
    assert result.results[0].reason == "boom"


@pytest.mark.asyncio
async def test_tick_ignores_future_and_disabled_schedules(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await seed_org(session, "org-2")
        await add_schedule(session, "org-1", next_run_at=T0 + timedelta(minutes=1))
        await add_schedule(session, "org-2", enabled=False)

    handler = RecordingHandler()
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, handler=handler)

    assert result.ok is True
    assert result.due_count == 0
    assert result.message == "対象 0 件を処理しました。"
    assert handler.calls == []


@pytest.mark.asyncio
async def test_never_run_schedule_is_due(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await add_schedule(session, "org-1", next_run_at=None, cadence=1440)

    result = await run_scheduler_tick(
        session_factory, settings, registry, now=T0, handler=RecordingHandler()
    )

    assert result.started_count == 1
    row = await load_schedule(session_factory, "org-1")
    assert as_utc(row.next_run_at) == T0 + timedelta(days=1)


@pytest.mark.asyncio
async def test_tick_respects_organization_limit(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        for index in range(3):
            await seed_org(session, f"org-{index}")
            await add_schedule(session, f"org-{index}", next_run_at=T0 - timedelta(minutes=index))

    handler = RecordingHandler()
    result = await run_scheduler_tick(
        session_factory, settings, registry, now=T0, limit_organizations=2, handler=handler
    )

    assert result.due_count == 2
    # Oldest next_run_at first
    assert handler.calls == ["org-2", "org-1"]


@pytest.mark.asyncio
async def test_listing_failure_aborts_tick(settings, registry):
    engine = create_async_engine("sqlite+aiosqlite:///")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        result = await run_scheduler_tick(
            factory, settings, registry, now=T0, handler=RecordingHandler()
        )
    finally:
        await engine.dispose()

    assert result.ok is False
    assert result.started_count == 0
    assert result.message == MISSING_TABLE_REASON


@pytest.mark.asyncio
async def test_unknown_job_key_has_no_handler(session_factory, settings, registry):
    result = await run_scheduler_tick(session_factory, settings, registry, now=T0, job_key="nope")
    assert result.ok is False
    assert result.due_count == 0


@pytest.mark.asyncio
async def test_tick_runs_real_bulk_sync_in_mock_mode(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1", linked_locations=2)
        await add_schedule(session, "org-1")

    result = await run_scheduler_tick(session_factory, settings, registry, now=T0)

    assert result.ok is True
    assert result.started_count == 1
    assert result.mock_mode is True


@pytest.mark.asyncio
async def test_zero_organization_limit_runs_nothing(session_factory, settings, registry, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1")
        await add_schedule(session, "org-1")

    handler = RecordingHandler()
    result = await run_scheduler_tick(
        session_factory, settings, registry, now=T0, limit_organizations=0, handler=handler
    )

    assert result.ok is True
    assert result.due_count == 0
    assert handler.calls == []


@pytest.mark.asyncio
async def test_unexpected_adapter_error_does_not_lock_out_next_tick(
    session_factory, settings, registry, seed_org, monkeypatch
):
    async with session_factory() as session:
        await seed_org(session, "org-1", linked_locations=1)
        await add_schedule(session, "org-1")

    async def broken_list_reviews(context):
        return [].get("reviews")

    adapter = registry.get(ProviderType.GOOGLE_BUSINESS_PROFILE)
    monkeypatch.setattr(adapter, "list_reviews", broken_list_reviews)

    first = await run_scheduler_tick(session_factory, settings, registry, now=T0)
    assert first.started_count == 1

    second = await run_scheduler_tick(session_factory, settings, registry, now=T0 + timedelta(days=2))
    assert second.skipped_count == 0
    assert second.results[0].status == TickItemStatus.STARTED

    async with session_factory() as session:
        runs = await list_job_runs(session, organization_id="org-1")
    assert {run.status for run in runs} == {JobRunStatus.FAILED}
