"""Google Business Profile adapter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from teppen.models.enums import PostStatus, ProviderErrorCode, ProviderType
from teppen.providers.base import ProviderAdapter
from teppen.providers.errors import ProviderError
from teppen.providers.google_gbp import api, oauth
from teppen.providers.types import (
    ProviderCapabilities,
    ProviderCreatePostInput,
    ProviderLocation,
    ProviderOAuthResult,
    ProviderPost,
    ProviderRequestContext,
    ProviderReview,
)


class GoogleBusinessProfileAdapter(ProviderAdapter):
    provider_type = ProviderType.GOOGLE_BUSINESS_PROFILE
    display_name = "Google ビジネス プロフィール"
    capabilities = ProviderCapabilities(
        can_connect_oauth=True,
        can_list_locations=True,
        can_read_reviews=True,
        can_reply_reviews=True,
        can_create_posts=True,
        can_read_insights=True,
    )
    required_settings = ("google_client_id", "google_client_secret", "google_redirect_uri")

    def _require_token(self, context: ProviderRequestContext) -> str:
        token = context.access_token
        if not token:
            raise ProviderError(
                self.provider_type,
                ProviderErrorCode.AUTH_REQUIRED,
                "Googleのアクセストークンがありません。再接続してください。",
            )
        return token

    def _require_location(self, context: ProviderRequestContext) -> str:
        if not context.external_location_id:
            raise ProviderError(
                self.provider_type,
                ProviderErrorCode.VALIDATION_ERROR,
                "GBPロケーションが紐付けられていません。",
            )
        return context.external_location_id

    async def get_auth_url(self, state: str, redirect_uri: str | None = None) -> str:
        return oauth.build_auth_url(self.settings, state, redirect_uri)

    async def handle_oauth_callback(
        self, code: str, redirect_uri: str | None = None
    ) -> ProviderOAuthResult:
        if self.mock_mode:
            return ProviderOAuthResult(
                access_token="mock-google-access",
                refresh_token="mock-google-refresh",
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                scopes=["business.manage"],
                external_account_id="mock-account",
                display_name="モックGoogleアカウント",
            )

        token = await oauth.exchange_code_for_token(
            self.settings,
            code,
            oauth.resolve_redirect_uri(self.settings, redirect_uri),
            client=self.client,
        )
        access_token = token["access_token"]
        user_info = await oauth.fetch_google_user_info(access_token, client=self.client)
        api_ok, api_message = await oauth.check_google_api_access(access_token, client=self.client)

        expires_in = token.get("expires_in")
        return ProviderOAuthResult(
            access_token=access_token,
            refresh_token=token.get("refresh_token"),
            expires_at=(
                datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
                if expires_in
                else None
            ),
            scopes=(token.get("scope") or "").split(),
            external_account_id=user_info.get("id"),
            display_name=user_info.get("name") or user_info.get("email"),
            metadata={
                "api_access": api_ok,
                "api_access_message": api_message,
            },
        )

    async def list_locations(self, context: ProviderRequestContext) -> list[ProviderLocation]:
        if self.mock_mode:
            return [
                ProviderLocation(
                    id="google-location-1",
                    name="TEPPEN 渋谷",
                    address="東京都渋谷区渋谷1-2-3",
                    lat=35.6595,
                    lng=139.7005,
                )
            ]
        return await api.list_google_locations(self._require_token(context), client=self.client)

    async def list_reviews(self, context: ProviderRequestContext) -> list[ProviderReview]:
        if self.mock_mode:
            # One fixture per location; ids stay unique across locations
            suffix = context.external_location_id or context.location_id or "default"
            return [
                ProviderReview(
                    id=f"mock-review-{suffix}",
                    rating=4.5,
                    author="愛子",
                    comment="対応が早くて助かりました。",
                    created_at=datetime.now(timezone.utc),
                )
            ]
        return await api.list_google_reviews(
            self._require_token(context), self._require_location(context), client=self.client
        )

    async def reply_review(
        self, context: ProviderRequestContext, review_id: str, reply: str
    ) -> None:
        if self.mock_mode:
            return
        await api.reply_google_review(
            self._require_token(context),
            self._require_location(context),
            review_id,
            reply,
            client=self.client,
        )

    async def create_post(
        self, context: ProviderRequestContext, post: ProviderCreatePostInput
    ) -> ProviderPost:
        if self.mock_mode:
            return ProviderPost(
                id="post-1",
                content=post.content,
                media_urls=post.media_urls,
                status=PostStatus.PUBLISHED,
            )
        return await api.create_google_post(
            self._require_token(context),
            self._require_location(context),
            post.content,
            image_url=post.media_urls[0] if post.media_urls else None,
            client=self.client,
        )
