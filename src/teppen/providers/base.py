"""Base class for provider adapters."""

from __future__ import annotations

import httpx

from teppen.config import Settings
from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.errors import ProviderError
from teppen.providers.types import (
    ProviderCapabilities,
    ProviderCreatePostInput,
    ProviderLocation,
    ProviderOAuthResult,
    ProviderPost,
    ProviderRequestContext,
    ProviderReview,
    ProviderSearchInput,
    ProviderSearchResult,
)


class ProviderAdapter:
    """Uniform interface over one third-party platform.

    Subclasses declare ``capabilities`` and override only the methods they
    support. Every other method raises ``ProviderError(not_supported)``, so a
    caller that skipped :meth:`supports` gets a structured error, not a crash.
    """

    provider_type: ProviderType
    display_name: str = ""
    capabilities: ProviderCapabilities = ProviderCapabilities()
    # Settings attribute names that must be non-empty for live calls
    required_settings: tuple[str, ...] = ()
    # Settings attribute gating the whole provider, if any
    feature_flag: str | None = None

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.client = client

    @property
    def mock_mode(self) -> bool:
        return self.settings.provider_mock_mode

    def supports(self, capability: str) -> bool:
        return bool(getattr(self.capabilities, capability, False))

    def is_enabled(self) -> bool:
        if self.feature_flag is None:
            return True
        return bool(getattr(self.settings, self.feature_flag, False))

    def missing_settings(self) -> list[str]:
        return [name for name in self.required_settings if not self.settings.is_set(name)]

    def _not_supported(self, operation: str) -> ProviderError:
        return ProviderError(
            self.provider_type,
            ProviderErrorCode.NOT_SUPPORTED,
            f"{self.display_name}は{operation}に対応していません。",
        )

    # ------------------------------------------------------------------
    # Optional operations
    # ------------------------------------------------------------------

    async def get_auth_url(self, state: str, redirect_uri: str | None = None) -> str:
        raise self._not_supported("OAuth接続")

    async def handle_oauth_callback(
        self, code: str, redirect_uri: str | None = None
    ) -> ProviderOAuthResult:
        raise self._not_supported("OAuth接続")

    async def list_locations(self, context: ProviderRequestContext) -> list[ProviderLocation]:
        raise self._not_supported("ロケーション取得")

    async def list_reviews(self, context: ProviderRequestContext) -> list[ProviderReview]:
        raise self._not_supported("レビュー取得")

    async def reply_review(
        self, context: ProviderRequestContext, review_id: str, reply: str
    ) -> None:
        raise self._not_supported("レビュー返信")

    async def create_post(
        self, context: ProviderRequestContext, post: ProviderCreatePostInput
    ) -> ProviderPost:
        raise self._not_supported("投稿作成")

    async def search_places(self, search: ProviderSearchInput) -> list[ProviderSearchResult]:
        raise self._not_supported("スポット検索")
