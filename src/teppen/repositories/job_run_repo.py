"""Job run and job run item repositories."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.job_run import JobRunItemRow, JobRunRow
from teppen.models.enums import JobRunStatus
from teppen.repositories.base import BaseRepository


class JobRunRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, JobRunRow)

    async def get(self, run_id: str) -> JobRunRow | None:
        return await self.get_by_id("id", run_id)

    async def has_running(self, organization_id: str, job_key: str) -> bool:
        stmt = (
            select(JobRunRow.id)
            .where(
                and_(
                    JobRunRow.organization_id == organization_id,
                    JobRunRow.job_key == job_key,
                    JobRunRow.status == JobRunStatus.RUNNING.value,
                )
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def get_latest(self, organization_id: str, job_key: str) -> JobRunRow | None:
        stmt = (
            select(JobRunRow)
            .where(
                and_(
                    JobRunRow.organization_id == organization_id,
                    JobRunRow.job_key == job_key,
                )
            )
            .order_by(JobRunRow.started_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent(
        self, limit: int = 50, organization_id: str | None = None
    ) -> list[JobRunRow]:
        """List runs newest first, optionally for one organization."""
        stmt = select(JobRunRow).order_by(JobRunRow.started_at.desc())
        if organization_id:
            stmt = stmt.where(JobRunRow.organization_id == organization_id)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class JobRunItemRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, JobRunItemRow)

    async def list_by_run(self, run_id: str) -> list[JobRunItemRow]:
        stmt = (
            select(JobRunItemRow)
            .where(JobRunItemRow.job_run_id == run_id)
            .order_by(JobRunItemRow.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
