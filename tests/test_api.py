"""HTTP API tests: health, cron tick, providers, schedules, bulk sync, runs and audit."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from teppen.db.models.job_schedule import JobScheduleRow
from teppen.db.models.review import ReviewRow
from teppen.workers.gbp_bulk_review_sync import GBP_BULK_REVIEW_SYNC_JOB_KEY

from conftest import CRON_SECRET, make_settings


@pytest.fixture
async def build_client(db_engine, session_factory):
    """Client factory for apps that need non-default settings."""
    from teppen.main import create_app

    clients = []

    async def _build(**overrides):
        app = create_app(make_settings(**overrides))
        app.state.db_engine = db_engine
        app.state.db_session_factory = session_factory
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield _build
    for client in clients:
        await client.aclose()


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "teppen-api"
    assert data["mock_mode"] is True
    assert response.headers["X-Trace-Id"].startswith("trc_")


@pytest.mark.asyncio
async def test_readiness_checks_database(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_trace_id_is_propagated(client):
    response = await client.get("/api/v1/health/live", headers={"X-Trace-Id": "trc_fixed"})
    assert response.headers["X-Trace-Id"] == "trc_fixed"


# --- cron tick -------------------------------------------------------------


@pytest.mark.asyncio
async def test_cron_tick_rejects_wrong_secret(client):
    response = await client.get("/api/cron/tick", params={"secret": "nope"})
    assert response.status_code == 401
    assert response.json()["ok"] is False


@pytest.mark.asyncio
async def test_cron_tick_without_configured_secret(build_client):
    client = await build_client(cron_secret=None)
    response = await client.get("/api/cron/tick", params={"secret": "anything"})
    assert response.status_code == 500
    assert "CRON_SECRET" in response.json()["message"]


@pytest.mark.asyncio
async def test_cron_tick_runs_due_schedules(client, session_factory, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1", linked_locations=1)
        session.add(
            JobScheduleRow(
                id="sch_1",
                organization_id="org-1",
                job_key=GBP_BULK_REVIEW_SYNC_JOB_KEY,
                enabled=True,
                cadence_minutes=360,
                next_run_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
        )
        await session.commit()

    response = await client.get("/api/cron/tick", params={"secret": CRON_SECRET})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["dueCount"] == 1
    assert body["startedCount"] == 1
    assert body["mockMode"] is True
    assert body["results"][0] == {"organizationId": "org-1", "status": "started", "reason": None}


# --- providers ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_provider_status_lists_every_provider(client):
    response = await client.get("/api/v1/providers")
    assert response.status_code == 200
    types = {item["type"] for item in response.json()}
    assert "google_gbp" in types and "yahoo_yolp" in types


@pytest.mark.asyncio
async def test_unknown_provider_is_404(client):
    response = await client.get("/api/v1/providers/myspace/connect", params={"organizationId": "org-1"})
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert error["traceId"]


@pytest.mark.asyncio
async def test_connect_without_credentials_is_not_configured(client, db_session, seed_org):
    await seed_org(db_session, "org-1")
    response = await client.get("/api/v1/providers/google_gbp/connect", params={"organizationId": "org-1"})
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "not_configured"


@pytest.mark.asyncio
async def test_google_connect_callback_and_disconnect(build_client, db_session, seed_org):
    await seed_org(db_session, "org-1")
    client = await build_client(
        google_client_id="cid",
        google_client_secret="secret",
        google_redirect_uri="https://app.test/api/v1/providers/google_gbp/callback",
    )

    start = await client.get(
        "/api/v1/providers/google_gbp/connect",
        params={"organizationId": "org-1", "locationId": "loc-1"},
    )
    assert start.status_code == 200
    started = start.json()
    assert started["authUrl"].startswith("https://accounts.google.com/")

    callback = await client.get(
        "/api/v1/providers/google_gbp/callback",
        params={"state": started["state"], "code": "auth-code"},
        headers={"x-actor-user-id": "user-1"},
    )
    assert callback.status_code == 200
    connection = callback.json()
    assert connection["connected"] is True
    assert connection["organizationId"] == "org-1"
    assert connection["locationId"] == "loc-1"
    assert connection["displayName"] == "モックGoogleアカウント"

    logs = (await client.get("/api/v1/audit-logs", params={"action": "provider.connect"})).json()
    assert logs["logs"][0]["actorUserId"] == "user-1"

    removed = await client.delete("/api/v1/organizations/org-1/providers/google_gbp")
    assert removed.status_code == 204
    again = await client.delete("/api/v1/organizations/org-1/providers/google_gbp")
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_callback_denied_is_recorded(build_client, db_session, seed_org):
    await seed_org(db_session, "org-1")
    client = await build_client(google_client_id="cid", google_client_secret="secret")
    state = (
        await client.get("/api/v1/providers/google_gbp/connect", params={"organizationId": "org-1"})
    ).json()["state"]

    response = await client.get(
        "/api/v1/providers/google_gbp/callback",
        params={"state": state, "error": "access_denied"},
    )

    assert response.status_code == 400
    assert "拒否" in response.json()["error"]["cause"]
    logs = (await client.get("/api/v1/audit-logs", params={"action": "provider.connect_failed"})).json()
    assert len(logs["logs"]) == 1


@pytest.mark.asyncio
async def test_callback_with_forged_state_is_rejected(client):
    response = await client.get(
        "/api/v1/providers/google_gbp/callback", params={"state": "abc.def", "code": "x"}
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_place_search_in_mock_mode(client):
    response = await client.get("/api/v1/providers/bing_maps/places", params={"q": "カフェ"})
    assert response.status_code == 200
    assert response.json()[0]["id"] == "bing-1"


# --- job schedules, bulk sync, runs -------------------------------------------


@pytest.mark.asyncio
async def test_job_schedule_put_and_get(client, db_session, seed_org):
    await seed_org(db_session, "org-1")
    path = f"/api/v1/organizations/org-1/job-schedules/{GBP_BULK_REVIEW_SYNC_JOB_KEY}"

    missing = await client.get(path)
    assert missing.status_code == 404

    saved = await client.put(path, json={"enabled": True, "cadenceMinutes": 30})
    assert saved.status_code == 200
    body = saved.json()
    assert body["enabled"] is True
    assert body["cadenceMinutes"] == 360
    assert body["nextRunAt"] is not None

    fetched = (await client.get(path)).json()
    assert fetched["schedule"]["id"] == body["id"]
    assert fetched["latestRun"] is None


@pytest.mark.asyncio
async def test_job_schedule_rejects_unknown_fields(client, db_session, seed_org):
    await seed_org(db_session, "org-1")
    response = await client.put(
        f"/api/v1/organizations/org-1/job-schedules/{GBP_BULK_REVIEW_SYNC_JOB_KEY}",
        json={"enabled": True, "bogus": 1},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_job_schedule_for_unknown_org(client):
    response = await client.put(
        f"/api/v1/organizations/nope/job-schedules/{GBP_BULK_REVIEW_SYNC_JOB_KEY}",
        json={"enabled": False},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bulk_sync_and_run_history(client, db_session, seed_org):
    await seed_org(db_session, "org-1", linked_locations=2)

    response = await client.post(
        "/api/v1/organizations/org-1/reviews/bulk-sync", headers={"x-actor-user-id": "user-9"}
    )
    assert response.status_code == 200
    result = response.json()
    assert result["ok"] is True
    assert result["status"] == "succeeded"
    assert result["summary"]["total_locations"] == 2

    runs = (await client.get("/api/v1/jobs/runs", params={"organizationId": "org-1"})).json()
    assert len(runs) == 1
    assert runs[0]["actorUserId"] == "user-9"

    items = (await client.get(f"/api/v1/jobs/runs/{runs[0]['id']}/items")).json()
    assert {item["locationId"] for item in items} == {"org-1-loc-1", "org-1-loc-2"}

    missing = await client.get("/api/v1/jobs/runs/run_missing/items")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_location_sync_and_reply(client, session_factory, seed_org):
    async with session_factory() as session:
        await seed_org(session, "org-1", linked_locations=1)

    synced = await client.post("/api/v1/organizations/org-1/locations/org-1-loc-1/reviews/sync")
    assert synced.status_code == 200
    assert synced.json()["count"] == 1

    async with session_factory() as session:
        review_id = (await session.execute(select(ReviewRow.id))).scalar_one()
    replied = await client.post(
        f"/api/v1/organizations/org-1/locations/org-1-loc-1/reviews/{review_id}/reply",
        json={"replyText": "ありがとうございます！"},
    )
    assert replied.status_code == 200
    assert replied.json()["replied"] is True


@pytest.mark.asyncio
async def test_audit_log_page_size_is_clamped(client):
    response = await client.get("/api/v1/audit-logs", params={"pageSize": 1000})
    assert response.status_code == 200
    body = response.json()
    assert body["pageSize"] == 100
    assert body["hasNext"] is False
