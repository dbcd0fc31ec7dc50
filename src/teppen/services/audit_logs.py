"""Audit log writing and filtered, paginated reading."""

from __future__ import annotations

import json
import logging
from datetime import datetime, time, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.base import as_utc, utcnow
from teppen.db.models.audit_log import AuditLogRow
from teppen.db.models.organization import OrganizationRow
from teppen.models.audit import AuditLog, AuditLogFilters, AuditLogPage
from teppen.repositories.audit_log_repo import AuditLogRepository
from teppen.services.id_generator import generate_id

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100

MASKED = "（マスク済み）"
SENSITIVE_KEY_PATTERNS = (
    "token",
    "secret",
    "password",
    "key",
    "refresh",
    "authorization",
    "invite",
)


async def write_audit_log(
    session: AsyncSession,
    *,
    action: str,
    organization_id: str | None = None,
    actor_user_id: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLogRow:
    """Append an audit entry in the caller's transaction."""
    repo = AuditLogRepository(session)
    row = await repo.create(
        id=generate_id("aud_"),
        action=action,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata or {},
        created_at=utcnow(),
    )
    logger.info("Audit %s org=%s target=%s:%s", action, organization_id, target_type, target_id)
    return row


def sanitize_metadata(data: dict[str, Any]) -> dict[str, Any]:
    """Mask values whose key looks sensitive, recursing into dicts and lists."""

    def sanitize_value(key: str, value: Any) -> Any:
        lowered = key.lower()
        if any(pattern in lowered for pattern in SENSITIVE_KEY_PATTERNS):
            return MASKED
        if isinstance(value, list):
            return [sanitize_metadata(item) if isinstance(item, dict) else item for item in value]
        if isinstance(value, dict):
            return sanitize_metadata(value)
        return value

    return {key: sanitize_value(key, value) for key, value in data.items()}


def clamp_page_size(value: int | None) -> int:
    if not value:
        return DEFAULT_PAGE_SIZE
    return min(max(value, MIN_PAGE_SIZE), MAX_PAGE_SIZE)


def parse_date_boundary(value: str, boundary: str) -> datetime | None:
    """Parse a filter date. Bare dates expand to the start or end of that UTC day."""
    value = value.strip()
    try:
        if len(value) <= 10:
            day = datetime.strptime(value, "%Y-%m-%d").date()
            edge = time.min if boundary == "start" else time.max
            return datetime.combine(day, edge, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(parsed)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _matches_free_text(log: AuditLog, text: str) -> bool:
    haystack = " ".join(
        part
        for part in (
            log.action,
            log.actor_user_id,
            log.organization_name,
            log.organization_id,
            log.target_type,
            log.target_id,
            json.dumps(log.metadata, ensure_ascii=False),
        )
        if part
    )
    return text.lower() in haystack.lower()


async def query_audit_logs(
    session: AsyncSession,
    filters: AuditLogFilters | None = None,
    page: int | None = None,
    page_size: int | None = None,
) -> AuditLogPage:
    """Newest-first audit page with masked metadata.

    ``has_next`` is decided by fetching one row past the page. The free-text
    filter is applied to the fetched page only.
    """
    filters = filters or AuditLogFilters()
    page = int(page) if page and page > 0 else 1
    page_size = clamp_page_size(page_size)

    date_from = _clean(filters.date_from)
    date_to = _clean(filters.date_to)
    provider = _clean(filters.provider_type)
    if provider == "all":
        provider = None

    repo = AuditLogRepository(session)
    rows = await repo.search(
        offset=(page - 1) * page_size,
        limit=page_size + 1,
        created_from=parse_date_boundary(date_from, "start") if date_from else None,
        created_to=parse_date_boundary(date_to, "end") if date_to else None,
        action=_clean(filters.action),
        organization_id=_clean(filters.organization_id),
        actor_user_id=_clean(filters.actor),
        provider=provider,
    )
    has_next = len(rows) > page_size
    rows = rows[:page_size]

    org_ids = {row.organization_id for row in rows if row.organization_id}
    org_names: dict[str, str] = {}
    if org_ids:
        result = await session.execute(
            select(OrganizationRow.id, OrganizationRow.name).where(OrganizationRow.id.in_(org_ids))
        )
        org_names = {org_id: name for org_id, name in result.all()}

    logs = [
        AuditLog(
            id=row.id,
            action=row.action,
            actor_user_id=row.actor_user_id,
            organization_id=row.organization_id,
            organization_name=org_names.get(row.organization_id or ""),
            target_type=row.target_type,
            target_id=row.target_id,
            created_at=as_utc(row.created_at),
            metadata=sanitize_metadata(row.metadata_json or {}),
        )
        for row in rows
    ]

    text = _clean(filters.text)
    if text:
        logs = [log for log in logs if _matches_free_text(log, text)]

    return AuditLogPage(logs=logs, page=page, page_size=page_size, has_next=has_next)
