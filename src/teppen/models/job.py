"""Pydantic models for job schedules, runs and the scheduler tick."""

from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field

from teppen.models.common import CamelModel
from teppen.models.enums import JobRunStatus, TickItemStatus


class JobSchedule(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    job_key: str
    enabled: bool
    cadence_minutes: int
    next_run_at: datetime | None = None
    last_enqueued_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobScheduleUpdate(CamelModel):
    """Body of ``PUT /organizations/{org}/job-schedules/{job_key}``."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool
    cadence_minutes: int | None = None


class JobRunSummary(CamelModel):
    total_locations: int = 0
    success_count: int = 0
    failed_count: int = 0
    review_count: int = 0
    mock_mode: bool = False


class JobRun(CamelModel):
    id: str
    organization_id: str
    job_key: str
    status: JobRunStatus
    started_at: datetime
    finished_at: datetime | None = None
    summary: dict[str, Any] = Field(default_factory=dict)
    error: dict[str, Any] = Field(default_factory=dict)
    actor_user_id: str | None = None


class JobRunItem(CamelModel):
    id: str
    job_run_id: str
    location_id: str | None = None
    status: str
    count: int | None = None
    error: dict[str, Any] = Field(default_factory=dict)


class TickItem(CamelModel):
    organization_id: str
    status: TickItemStatus
    reason: str | None = None


class SchedulerTickResult(CamelModel):
    ok: bool
    message: str
    due_count: int = 0
    started_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    mock_mode: bool = False
    results: list[TickItem] = Field(default_factory=list)
