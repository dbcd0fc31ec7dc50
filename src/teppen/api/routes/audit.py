"""Audit log search endpoint."""

from fastapi import APIRouter, Query

from teppen.dependencies import DBSession
from teppen.models.audit import AuditLogFilters
from teppen.services.audit_logs import query_audit_logs

router = APIRouter()


@router.get("/audit-logs")
async def list_audit_logs(
    db: DBSession,
    date_from: str | None = Query(None, alias="from"),
    date_to: str | None = Query(None, alias="to"),
    action: str | None = None,
    organization_id: str | None = Query(None, alias="organizationId"),
    actor: str | None = None,
    provider: str | None = None,
    text: str | None = Query(None, alias="q"),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, alias="pageSize"),
) -> dict:
    """Newest-first audit log page. Sensitive metadata values are masked."""
    filters = AuditLogFilters(
        date_from=date_from,
        date_to=date_to,
        action=action,
        organization_id=organization_id,
        actor=actor,
        provider_type=provider,
        text=text,
    )
    result = await query_audit_logs(db, filters, page=page, page_size=page_size)
    return result.to_json_dict()
