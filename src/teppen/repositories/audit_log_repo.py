"""Audit log repository."""

from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.audit_log import AuditLogRow
from teppen.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLogRow)

    async def search(
        self,
        *,
        offset: int,
        limit: int,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        action: str | None = None,
        organization_id: str | None = None,
        actor_user_id: str | None = None,
        provider: str | None = None,
    ) -> list[AuditLogRow]:
        """Filtered audit rows, newest first."""
        stmt = select(AuditLogRow).order_by(AuditLogRow.created_at.desc(), AuditLogRow.id.desc())
        if created_from:
            stmt = stmt.where(AuditLogRow.created_at >= created_from)
        if created_to:
            stmt = stmt.where(AuditLogRow.created_at <= created_to)
        if action:
            stmt = stmt.where(AuditLogRow.action == action)
        if organization_id:
            stmt = stmt.where(AuditLogRow.organization_id == organization_id)
        if actor_user_id:
            stmt = stmt.where(AuditLogRow.actor_user_id == actor_user_id)
        if provider:
            stmt = stmt.where(
                or_(
                    AuditLogRow.target_id == provider,
                    AuditLogRow.metadata_json["provider"].as_string() == provider,
                    AuditLogRow.metadata_json["provider_type"].as_string() == provider,
                )
            )
        stmt = stmt.offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
