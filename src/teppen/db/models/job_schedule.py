"""Recurring job schedule table, one row per (organization, job key)."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from teppen.db.base import Base, TimestampMixin


class JobScheduleRow(Base, TimestampMixin):
    __tablename__ = "job_schedules"
    __table_args__ = (
        UniqueConstraint("organization_id", "job_key", name="uq_job_schedules_org_job"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("organizations.id"), nullable=False, index=True
    )
    job_key: Mapped[str] = mapped_column(String(100), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cadence_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_enqueued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
