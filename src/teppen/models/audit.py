"""Pydantic models for audit log queries."""

from datetime import datetime
from typing import Any

from pydantic import Field

from teppen.models.common import CamelModel


class AuditLog(CamelModel):
    id: str
    action: str
    actor_user_id: str | None = None
    organization_id: str | None = None
    organization_name: str | None = None
    target_type: str | None = None
    target_id: str | None = None
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditLogFilters(CamelModel):
    # Dates accept ``YYYY-MM-DD`` (whole-day boundary) or full ISO timestamps
    date_from: str | None = None
    date_to: str | None = None
    action: str | None = None
    organization_id: str | None = None
    actor: str | None = None
    provider_type: str | None = None
    text: str | None = None


class AuditLogPage(CamelModel):
    logs: list[AuditLog]
    page: int
    page_size: int
    has_next: bool
