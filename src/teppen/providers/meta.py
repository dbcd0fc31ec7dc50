"""Meta (Facebook/Instagram) adapter: OAuth connect and post creation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from teppen.models.enums import PostStatus, ProviderErrorCode, ProviderType
from teppen.providers.base import ProviderAdapter
from teppen.providers.errors import ProviderError
from teppen.providers.types import (
    ProviderCapabilities,
    ProviderCreatePostInput,
    ProviderOAuthResult,
    ProviderPost,
    ProviderRequestContext,
)
from teppen.utils.http import request_json

AUTH_ENDPOINT = "https://www.facebook.com/v20.0/dialog/oauth"
TOKEN_ENDPOINT = "https://graph.facebook.com/v20.0/oauth/access_token"

SCOPES = [
    "pages_show_list",
    "pages_manage_posts",
    "pages_read_engagement",
    "instagram_basic",
    "instagram_content_publish",
]


class MetaAdapter(ProviderAdapter):
    provider_type = ProviderType.META
    display_name = "Meta（Facebook/Instagram）"
    capabilities = ProviderCapabilities(can_connect_oauth=True, can_create_posts=True)
    required_settings = ("meta_app_id", "meta_app_secret", "meta_redirect_uri")

    def _require_credentials(self) -> tuple[str, str]:
        if not self.settings.meta_app_id or not self.settings.meta_app_secret:
            raise ProviderError(
                self.provider_type,
                ProviderErrorCode.NOT_CONFIGURED,
                "Metaアプリの認証情報が未設定です",
            )
        return self.settings.meta_app_id, self.settings.meta_app_secret

    def _redirect_uri(self, redirect_uri: str | None) -> str:
        return (
            redirect_uri
            or self.settings.meta_redirect_uri
            or f"{self.settings.app_base_url or ''}/api/v1/providers/meta/callback"
        )

    async def get_auth_url(self, state: str, redirect_uri: str | None = None) -> str:
        app_id, _ = self._require_credentials()
        query = urlencode(
            {
                "client_id": app_id,
                "redirect_uri": self._redirect_uri(redirect_uri),
                "response_type": "code",
                "scope": ",".join(SCOPES),
                "state": state,
            }
        )
        return f"{AUTH_ENDPOINT}?{query}"

    async def handle_oauth_callback(
        self, code: str, redirect_uri: str | None = None
    ) -> ProviderOAuthResult:
        if self.mock_mode:
            return ProviderOAuthResult(
                access_token="mock-meta-access",
                refresh_token="mock-meta-refresh",
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                scopes=["pages_manage_posts"],
                external_account_id="mock-meta-user",
                display_name="モックMetaユーザー",
            )

        app_id, app_secret = self._require_credentials()
        response = await request_json(
            TOKEN_ENDPOINT,
            params={
                "client_id": app_id,
                "client_secret": app_secret,
                "redirect_uri": self._redirect_uri(redirect_uri),
                "code": code,
            },
            client=self.client,
        )
        expires_in = response.get("expires_in")
        return ProviderOAuthResult(
            access_token=response["access_token"],
            expires_at=(
                datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
                if expires_in
                else None
            ),
        )

    async def create_post(
        self, context: ProviderRequestContext, post: ProviderCreatePostInput
    ) -> ProviderPost:
        if self.mock_mode:
            return ProviderPost(
                id="meta-post-1",
                content=post.content,
                media_urls=post.media_urls,
                status=PostStatus.PUBLISHED,
            )
        raise ProviderError(
            self.provider_type,
            ProviderErrorCode.NOT_SUPPORTED,
            "Metaの投稿公開は未実装です",
        )
