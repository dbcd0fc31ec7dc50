"""Pydantic models for provider status and connection responses."""

from datetime import datetime

from pydantic import Field

from teppen.models.common import CamelModel
from teppen.models.enums import ProviderStatusKind, ProviderType


class ProviderStatus(CamelModel):
    type: ProviderType
    name: str
    enabled: bool
    status: ProviderStatusKind
    required_settings: list[str] = Field(default_factory=list)
    missing_settings: list[str] = Field(default_factory=list)
    capabilities: dict[str, bool] = Field(default_factory=dict)
    feature_flag: str | None = None


class ProviderConnectResponse(CamelModel):
    provider: ProviderType
    auth_url: str
    state: str


class ProviderConnection(CamelModel):
    provider: ProviderType
    organization_id: str
    location_id: str | None = None
    connected: bool
    reason: str | None = None
    message: str | None = None
    external_account_id: str | None = None
    display_name: str | None = None
    expires_at: datetime | None = None
    scopes: list[str] = Field(default_factory=list)
    api_access: bool | None = None
