"""Repositories for locations and their provider links."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.location import LocationProviderLinkRow, LocationRow
from teppen.repositories.base import BaseRepository


class LocationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, LocationRow)

    async def get(self, location_id: str) -> LocationRow | None:
        return await self.get_by_id("id", location_id)

    async def list_by_organization(self, organization_id: str) -> list[LocationRow]:
        stmt = (
            select(LocationRow)
            .where(LocationRow.organization_id == organization_id)
            .order_by(LocationRow.created_at.asc(), LocationRow.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class LocationProviderLinkRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, LocationProviderLinkRow)

    async def get_for(self, location_id: str, provider: str) -> LocationProviderLinkRow | None:
        stmt = select(LocationProviderLinkRow).where(
            and_(
                LocationProviderLinkRow.location_id == location_id,
                LocationProviderLinkRow.provider == provider,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_locations(
        self, location_ids: list[str], provider: str
    ) -> list[LocationProviderLinkRow]:
        if not location_ids:
            return []
        stmt = select(LocationProviderLinkRow).where(
            and_(
                LocationProviderLinkRow.location_id.in_(location_ids),
                LocationProviderLinkRow.provider == provider,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
