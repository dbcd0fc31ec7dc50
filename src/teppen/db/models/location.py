"""Location and provider link tables."""

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from teppen.db.base import Base, TimestampMixin


class LocationRow(Base, TimestampMixin):
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)


class LocationProviderLinkRow(Base, TimestampMixin):
    """Maps a location to its resource on a provider (e.g. a GBP location name)."""

    __tablename__ = "location_provider_links"
    __table_args__ = (
        UniqueConstraint("location_id", "provider", name="uq_location_links_location_provider"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    location_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("locations.id"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    external_location_id: Mapped[str] = mapped_column(String(500), nullable=False)
    metadata_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
