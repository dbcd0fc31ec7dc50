"""Job schedule repository."""

from datetime import datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.job_schedule import JobScheduleRow
from teppen.repositories.base import BaseRepository


class JobScheduleRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, JobScheduleRow)

    async def get_for(self, organization_id: str, job_key: str) -> JobScheduleRow | None:
        stmt = select(JobScheduleRow).where(
            and_(
                JobScheduleRow.organization_id == organization_id,
                JobScheduleRow.job_key == job_key,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_due(
        self, job_key: str, now: datetime, limit: int | None = None
    ) -> list[JobScheduleRow]:
        """Enabled schedules whose next run is at or before ``now`` (or never set)."""
        stmt = (
            select(JobScheduleRow)
            .where(
                and_(
                    JobScheduleRow.job_key == job_key,
                    JobScheduleRow.enabled.is_(True),
                    or_(
                        JobScheduleRow.next_run_at.is_(None),
                        JobScheduleRow.next_run_at <= now,
                    ),
                )
            )
            .order_by(JobScheduleRow.next_run_at.asc().nulls_first())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_enabled(self, job_key: str) -> int:
        stmt = select(func.count(JobScheduleRow.id)).where(
            and_(
                JobScheduleRow.job_key == job_key,
                JobScheduleRow.enabled.is_(True),
            )
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
