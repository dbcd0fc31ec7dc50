"""Normalized provider data models shared by every adapter."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from teppen.models.enums import PostStatus, ProviderType


class ProviderCapabilities(BaseModel):
    """What an adapter can do. Check before calling the matching method."""

    model_config = ConfigDict(frozen=True)

    can_connect_oauth: bool = False
    can_list_locations: bool = False
    can_read_reviews: bool = False
    can_reply_reviews: bool = False
    can_create_posts: bool = False
    can_read_insights: bool = False
    can_search_places: bool = False


class ProviderAuth(BaseModel):
    access_token: str | None = None
    expires_at: datetime | None = None
    scopes: list[str] = Field(default_factory=list)


class ProviderAccount(BaseModel):
    provider: ProviderType
    external_account_id: str | None = None
    display_name: str | None = None
    auth: ProviderAuth | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderRequestContext(BaseModel):
    """Who and where a provider call is made for."""

    organization_id: str
    location_id: str | None = None
    external_location_id: str | None = None
    account: ProviderAccount | None = None

    @property
    def access_token(self) -> str | None:
        if self.account and self.account.auth:
            return self.account.auth.access_token
        return None


class ProviderLocation(BaseModel):
    id: str
    name: str
    address: str | None = None
    lat: float | None = None
    lng: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderReview(BaseModel):
    id: str
    rating: float
    comment: str | None = None
    author: str | None = None
    created_at: datetime


class ProviderPost(BaseModel):
    id: str
    content: str
    media_urls: list[str] = Field(default_factory=list)
    status: PostStatus


class ProviderSearchResult(BaseModel):
    id: str
    name: str
    address: str | None = None
    lat: float | None = None
    lng: float | None = None
    raw: Any = None


class ProviderOAuthResult(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scopes: list[str] = Field(default_factory=list)
    external_account_id: str | None = None
    display_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderCreatePostInput(BaseModel):
    content: str = Field(..., min_length=1)
    media_urls: list[str] = Field(default_factory=list)


class ProviderSearchInput(BaseModel):
    query: str = Field(..., min_length=1)
    limit: int = Field(5, ge=1, le=50)
