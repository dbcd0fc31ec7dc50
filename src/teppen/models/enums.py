"""String enums shared across the service."""

from enum import StrEnum


class ProviderType(StrEnum):
    GOOGLE_BUSINESS_PROFILE = "google_gbp"
    META = "meta"
    YAHOO_PLACE = "yahoo_place"
    APPLE_BUSINESS_CONNECT = "apple_business_connect"
    BING_MAPS = "bing_maps"
    YAHOO_YOLP = "yahoo_yolp"


class ProviderErrorCode(StrEnum):
    NOT_SUPPORTED = "not_supported"
    NOT_CONFIGURED = "not_configured"
    AUTH_REQUIRED = "auth_required"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN = "unknown"


class ProviderStatusKind(StrEnum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    NOT_CONFIGURED = "not_configured"
    MOCKED = "mocked"


class JobRunStatus(StrEnum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL = "partial"


class TickItemStatus(StrEnum):
    STARTED = "started"
    SKIPPED = "skipped"
    ERROR = "error"


class PostStatus(StrEnum):
    QUEUED = "queued"
    PUBLISHED = "published"
    FAILED = "failed"
