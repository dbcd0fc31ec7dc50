"""Job schedule store tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from teppen.workers.gbp_bulk_review_sync import GBP_BULK_REVIEW_SYNC_JOB_KEY
from teppen.workers.job_schedules import (
    count_enabled_job_schedules,
    get_job_schedule,
    is_missing_table,
    list_due_job_schedules,
    normalize_cadence_minutes,
    update_job_schedule_timing,
    upsert_job_schedule,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
KEY = GBP_BULK_REVIEW_SYNC_JOB_KEY


@pytest.mark.parametrize(
    "value, expected",
    [(None, 1440), (0, 1440), (-5, 1440), (60, 360), (360, 360), (720, 720), (5000, 1440)],
)
def test_normalize_cadence_minutes(value, expected):
    assert normalize_cadence_minutes(value) == expected


@pytest.mark.parametrize("value", [None, -1, 0, 1, 359, 360, 361, 1439, 1440, 1441, 99999])
def test_normalize_cadence_is_idempotent(value):
    once = normalize_cadence_minutes(value)
    assert normalize_cadence_minutes(once) == once


def test_is_missing_table_detects_sqlite_and_postgres_messages():
    sqlite_error = OperationalError("SELECT 1", {}, Exception("no such table: job_schedules"))
    pg_error = OperationalError("SELECT 1", {}, Exception('relation "job_runs" does not exist'))
    other = OperationalError("SELECT 1", {}, Exception("database is locked"))
    assert is_missing_table(sqlite_error)
    assert is_missing_table(pg_error)
    assert not is_missing_table(other)


def test_is_missing_table_detects_pgcode():
    class PgError(Exception):
        pgcode = "42P01"

    assert is_missing_table(OperationalError("SELECT 1", {}, PgError("undefined table")))


@pytest.mark.asyncio
async def test_enable_schedules_next_run_from_now(db_session, settings, seed_org):
    await seed_org(db_session, "org-1")

    result = await upsert_job_schedule(db_session, settings, "org-1", KEY, True, 360, now=NOW)
    await db_session.commit()

    assert result.ok is True
    assert result.schedule.cadence_minutes == 360
    assert result.schedule.next_run_at == NOW + timedelta(hours=6)
    assert result.schedule.id.startswith("sch_")


@pytest.mark.asyncio
async def test_upsert_clamps_cadence_and_disabling_clears_next_run(db_session, settings, seed_org):
    await seed_org(db_session, "org-1")

    first = await upsert_job_schedule(db_session, settings, "org-1", KEY, True, 10, now=NOW)
    second = await upsert_job_schedule(db_session, settings, "org-1", KEY, False, 99999, now=NOW)
    await db_session.commit()

    assert first.schedule.cadence_minutes == 360
    assert second.schedule.id == first.schedule.id
    assert second.schedule.enabled is False
    assert second.schedule.cadence_minutes == 1440
    assert second.schedule.next_run_at is None

    stored = await get_job_schedule(db_session, "org-1", KEY)
    assert stored.enabled is False


@pytest.mark.asyncio
async def test_list_due_orders_never_run_first(db_session, settings, seed_org):
    for org_id in ("org-a", "org-b", "org-c"):
        await seed_org(db_session, org_id)
    await upsert_job_schedule(db_session, settings, "org-a", KEY, True, 360, now=NOW - timedelta(days=1))
    await upsert_job_schedule(db_session, settings, "org-b", KEY, True, 360, now=NOW)
    await upsert_job_schedule(db_session, settings, "org-c", KEY, True, 360, now=NOW)
    await update_job_schedule_timing(db_session, "org-c", KEY, next_run_at=None, last_enqueued_at=None)
    await db_session.commit()

    due = await list_due_job_schedules(db_session, KEY, now=NOW)

    assert due.ok is True
    assert [s.organization_id for s in due.schedules] == ["org-c", "org-a"]


@pytest.mark.asyncio
async def test_update_timing_is_idempotent(db_session, settings, seed_org):
    await seed_org(db_session, "org-1")
    await upsert_job_schedule(db_session, settings, "org-1", KEY, True, 360, now=NOW)

    target = NOW + timedelta(hours=12)
    first = await update_job_schedule_timing(db_session, "org-1", KEY, target, NOW)
    second = await update_job_schedule_timing(db_session, "org-1", KEY, target, NOW)
    await db_session.commit()

    assert first.ok and second.ok
    schedule = await get_job_schedule(db_session, "org-1", KEY)
    assert schedule.next_run_at == target
    assert schedule.last_enqueued_at == NOW


@pytest.mark.asyncio
async def test_update_timing_for_missing_schedule(db_session):
    result = await update_job_schedule_timing(db_session, "org-x", KEY, NOW, NOW)
    assert result.ok is False


@pytest.mark.asyncio
async def test_count_enabled(db_session, settings, seed_org):
    await seed_org(db_session, "org-1")
    await seed_org(db_session, "org-2")
    await upsert_job_schedule(db_session, settings, "org-1", KEY, True, 360, now=NOW)
    await upsert_job_schedule(db_session, settings, "org-2", KEY, False, 360, now=NOW)
    await db_session.commit()

    result = await count_enabled_job_schedules(db_session, KEY)
    assert result.count == 1
    assert result.reason is None
