"""Review repository."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.review import ReviewRow
from teppen.repositories.base import BaseRepository


class ReviewRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ReviewRow)

    async def get(self, review_id: str) -> ReviewRow | None:
        return await self.get_by_id("id", review_id)

    async def get_by_external(self, provider: str, external_review_id: str) -> ReviewRow | None:
        stmt = select(ReviewRow).where(
            and_(
                ReviewRow.provider == provider,
                ReviewRow.external_review_id == external_review_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_location(self, location_id: str) -> list[ReviewRow]:
        stmt = (
            select(ReviewRow)
            .where(ReviewRow.location_id == location_id)
            .order_by(ReviewRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
