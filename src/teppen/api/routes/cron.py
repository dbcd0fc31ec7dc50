"""Externally triggered scheduler tick."""

import hmac
import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from teppen.dependencies import AppSettings, Registry
from teppen.workers.scheduler import run_scheduler_tick

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/cron/tick", tags=["Cron"])
async def cron_tick(
    request: Request,
    settings: AppSettings,
    registry: Registry,
    secret: str = Query(""),
):
    """Run one scheduler tick. Guarded by the ``CRON_SECRET`` shared secret."""
    if not settings.cron_secret:
        logger.error("Cron tick rejected: CRON_SECRET is not configured")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "message": "CRON_SECRET が未設定のため実行できません。"},
        )

    if not hmac.compare_digest(secret.encode("utf-8"), settings.cron_secret.encode("utf-8")):
        logger.warning("Cron tick rejected: secret mismatch")
        return JSONResponse(status_code=401, content={"ok": False, "message": "認証に失敗しました。"})

    result = await run_scheduler_tick(
        request.app.state.db_session_factory,
        settings,
        registry,
    )
    return JSONResponse(status_code=200 if result.ok else 500, content=result.to_json_dict())
