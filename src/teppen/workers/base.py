"""Base job handler interface for scheduled jobs."""

from abc import ABC, abstractmethod

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.providers.registry import ProviderRegistry


class JobResult(BaseModel):
    """Outcome the scheduler acts on: ``ok`` decides started vs error."""

    ok: bool
    message: str = ""
    reason: str | None = None


class JobHandler(ABC):
    """Abstract base class for scheduled job handlers."""

    job_key: str

    @abstractmethod
    async def run(
        self,
        session: AsyncSession,
        settings: Settings,
        registry: ProviderRegistry,
        organization_id: str,
        actor_user_id: str | None = None,
    ) -> JobResult:
        """Run the job for one organization.

        Expected failures come back as ``ok=False`` with a reason; the
        scheduler also treats a raised exception as an error for that
        organization only.
        """
        ...
