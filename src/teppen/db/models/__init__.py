"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from teppen.db.models.organization import OrganizationRow
from teppen.db.models.job_schedule import JobScheduleRow
from teppen.db.models.job_run import JobRunItemRow, JobRunRow
from teppen.db.models.provider_account import ProviderAccountRow
from teppen.db.models.location import LocationProviderLinkRow, LocationRow
from teppen.db.models.review import ReviewRow
from teppen.db.models.audit_log import AuditLogRow

__all__ = [
    "OrganizationRow",
    "JobScheduleRow",
    "JobRunRow",
    "JobRunItemRow",
    "ProviderAccountRow",
    "LocationRow",
    "LocationProviderLinkRow",
    "ReviewRow",
    "AuditLogRow",
]
