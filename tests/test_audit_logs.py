"""Audit log writing, masking and querying tests."""

from datetime import datetime, timezone

import pytest

from teppen.db.models.audit_log import AuditLogRow
from teppen.models.audit import AuditLogFilters
from teppen.services.audit_logs import (
    MASKED,
    clamp_page_size,
    parse_date_boundary,
    query_audit_logs,
    sanitize_metadata,
    write_audit_log,
)


def test_sanitize_metadata_masks_sensitive_keys():
    cleaned = sanitize_metadata(
        {
            "provider": "google_gbp",
            "access_token": "ya29",
            "nested": {"client_secret": "s", "count": 3},
            "items": [{"refresh": "r", "ok": True}, "plain"],
            "invite_url": "https://invite",
        }
    )
    assert cleaned["provider"] == "google_gbp"
    assert cleaned["access_token"] == MASKED
    assert cleaned["nested"] == {"client_secret": MASKED, "count": 3}
    assert cleaned["items"] == [{"refresh": MASKED, "ok": True}, "plain"]
    assert cleaned["invite_url"] == MASKED


@pytest.mark.parametrize("value, expected", [(None, 20), (0, 20), (1, 5), (50, 50), (1000, 100)])
def test_clamp_page_size(value, expected):
    assert clamp_page_size(value) == expected


def test_parse_date_boundary():
    start = parse_date_boundary("2024-05-01", "start")
    end = parse_date_boundary("2024-05-01", "end")
    assert start == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert end.date() == start.date() and end.hour == 23 and end.minute == 59
    assert parse_date_boundary("2024-05-01T12:00:00Z", "start") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert parse_date_boundary("yesterday", "start") is None


async def add_log(session, log_id, action, created_at, org_id="org-1", actor="user-1", metadata=None):
    session.add(
        AuditLogRow(
            id=log_id,
            action=action,
            organization_id=org_id,
            actor_user_id=actor,
            target_type="provider",
            target_id="google_gbp",
            metadata_json=metadata or {},
            created_at=created_at,
        )
    )


@pytest.mark.asyncio
async def test_write_audit_log_generates_id(db_session):
    row = await write_audit_log(
        db_session, action="provider.connect", organization_id="org-1", metadata={"api_access": True}
    )
    await db_session.commit()
    assert row.id.startswith("aud_")
    assert row.metadata_json == {"api_access": True}


@pytest.mark.asyncio
async def test_query_pages_newest_first_with_org_names(db_session, seed_org):
    await seed_org(db_session, "org-1", name="渋谷本店")
    for day in range(1, 8):
        await add_log(db_session, f"aud_{day}", "reviews.sync", datetime(2024, 5, day, tzinfo=timezone.utc))
    await db_session.commit()

    first = await query_audit_logs(db_session, page=1, page_size=5)
    second = await query_audit_logs(db_session, page=2, page_size=5)

    assert [log.id for log in first.logs] == ["aud_7", "aud_6", "aud_5", "aud_4", "aud_3"]
    assert first.has_next is True
    assert [log.id for log in second.logs] == ["aud_2", "aud_1"]
    assert second.has_next is False
    assert first.logs[0].organization_name == "渋谷本店"


@pytest.mark.asyncio
async def test_query_filters(db_session):
    await add_log(db_session, "aud_a", "provider.connect", datetime(2024, 5, 1, 10, tzinfo=timezone.utc),
                  metadata={"provider": "google_gbp"})
    await add_log(db_session, "aud_b", "provider.connect", datetime(2024, 5, 2, 10, tzinfo=timezone.utc),
                  actor="user-2", metadata={"provider": "meta"})
    await add_log(db_session, "aud_c", "reviews.sync", datetime(2024, 5, 3, 10, tzinfo=timezone.utc),
                  org_id="org-2", metadata={"provider": "google_gbp", "refresh_token": "r"})
    await db_session.commit()

    by_action = await query_audit_logs(db_session, AuditLogFilters(action="provider.connect"))
    assert {log.id for log in by_action.logs} == {"aud_a", "aud_b"}

    by_date = await query_audit_logs(db_session, AuditLogFilters(date_from="2024-05-02", date_to="2024-05-02"))
    assert [log.id for log in by_date.logs] == ["aud_b"]

    by_actor = await query_audit_logs(db_session, AuditLogFilters(actor="user-2"))
    assert [log.id for log in by_actor.logs] == ["aud_b"]

    by_org = await query_audit_logs(db_session, AuditLogFilters(organization_id="org-2"))
    assert [log.id for log in by_org.logs] == ["aud_c"]
    assert by_org.logs[0].metadata["refresh_token"] == MASKED

    all_providers = await query_audit_logs(db_session, AuditLogFilters(provider_type="all"))
    assert len(all_providers.logs) == 3

    by_text = await query_audit_logs(db_session, AuditLogFilters(text="META"))
    assert [log.id for log in by_text.logs] == ["aud_b"]
