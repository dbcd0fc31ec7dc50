"""Job run ledger tables."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from teppen.db.base import Base, TimestampMixin

_RUNNING = text("status = 'running'")


class JobRunRow(Base, TimestampMixin):
    """One execution attempt of a job for an organization."""

    __tablename__ = "job_runs"
    __table_args__ = (
        # At most one running run per (organization, job key); inserting a
        # second one is the atomic claim failure.
        Index(
            "uq_job_runs_running",
            "organization_id",
            "job_key",
            unique=True,
            sqlite_where=_RUNNING,
            postgresql_where=_RUNNING,
        ),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("organizations.id"), nullable=False, index=True
    )
    job_key: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    summary_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    error_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    actor_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)


class JobRunItemRow(Base, TimestampMixin):
    """Per-location outcome of a job run."""

    __tablename__ = "job_run_items"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    job_run_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("job_runs.id"), nullable=False, index=True
    )
    location_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
