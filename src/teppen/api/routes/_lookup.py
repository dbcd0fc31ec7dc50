"""Shared existence checks for path parameters."""

from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.models.location import LocationRow
from teppen.db.models.organization import OrganizationRow
from teppen.errors.exceptions import NotFoundError


async def require_organization(db: AsyncSession, organization_id: str) -> OrganizationRow:
    org = await db.get(OrganizationRow, organization_id)
    if org is None:
        raise NotFoundError("Organization", organization_id)
    return org


async def require_location(db: AsyncSession, organization_id: str, location_id: str) -> LocationRow:
    location = await db.get(LocationRow, location_id)
    if location is None or location.organization_id != organization_id:
        raise NotFoundError("Location", location_id)
    return location
