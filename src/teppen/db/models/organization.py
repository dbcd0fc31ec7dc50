"""Organization table."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from teppen.db.base import Base, TimestampMixin


class OrganizationRow(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
