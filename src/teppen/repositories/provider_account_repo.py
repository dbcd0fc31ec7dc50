"""Provider account repository."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.provider_account import ProviderAccountRow
from teppen.repositories.base import BaseRepository


class ProviderAccountRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ProviderAccountRow)

    async def get_for(self, organization_id: str, provider: str) -> ProviderAccountRow | None:
        stmt = select(ProviderAccountRow).where(
            and_(
                ProviderAccountRow.organization_id == organization_id,
                ProviderAccountRow.provider == provider,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
