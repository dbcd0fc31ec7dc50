"""Google Business Profile operations on behalf of an organization.

Tokens are read from the organization's provider account, refreshed when they
are within five minutes of expiry, and every failure surfaces as a
``ProviderError`` so callers can map it with ``to_ui_error``.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.db.base import as_utc, utcnow
from teppen.db.models.location import LocationProviderLinkRow
from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.errors import ProviderError
from teppen.providers.google_gbp.oauth import refresh_google_access_token
from teppen.providers.registry import ProviderRegistry
from teppen.providers.types import (
    ProviderAccount,
    ProviderAuth,
    ProviderLocation,
    ProviderRequestContext,
)
from teppen.repositories.location_repo import LocationProviderLinkRepository
from teppen.repositories.review_repo import ReviewRepository
from teppen.services.audit_logs import write_audit_log
from teppen.services.id_generator import generate_id
from teppen.services.provider_accounts import (
    get_provider_account,
    mark_provider_error,
    upsert_provider_account,
)
from teppen.services.reviews import record_review_reply, upsert_reviews
from teppen.utils.crypto import SecretDecryptionError, SecretKeyError, decrypt_secret, encrypt_secret
from teppen.utils.http import HttpError

logger = logging.getLogger(__name__)

GBP = ProviderType.GOOGLE_BUSINESS_PROFILE
REFRESH_THRESHOLD = timedelta(minutes=5)


def _auth_error(message: str) -> ProviderError:
    return ProviderError(GBP, ProviderErrorCode.AUTH_REQUIRED, message)


async def _require_reauth(
    session: AsyncSession,
    organization_id: str,
    actor_user_id: str | None,
    message: str,
    reason: str,
) -> ProviderError:
    await mark_provider_error(session, organization_id, GBP, message, reauth_required=True)
    await write_audit_log(
        session,
        action="provider.reauth_required",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="provider",
        target_id=GBP.value,
        metadata={"reason": reason},
    )
    return _auth_error(message)


async def ensure_google_access_token(
    session: AsyncSession,
    settings: Settings,
    organization_id: str,
    actor_user_id: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> ProviderAccount:
    """Return a usable Google account with a live access token.

    Raises ``ProviderError(auth_required)`` when the account is missing,
    flagged for reauth, lacks API approval, cannot be decrypted, or cannot be
    refreshed. The last two cases also mark the account ``reauth_required``.
    """
    if settings.provider_mock_mode:
        return ProviderAccount(provider=GBP, auth=ProviderAuth(access_token="mock-google-access"))

    record = await get_provider_account(session, organization_id, GBP)
    if record is None or not record.token_encrypted:
        raise _auth_error("Googleアカウントが未接続です。")

    metadata = dict(record.metadata_json or {})
    if metadata.get("reauth_required"):
        raise _auth_error("再認可が必要です。Googleで再接続してください。")
    if metadata.get("api_access") is False:
        raise _auth_error("API承認が必要です。承認後に再接続してください。")

    try:
        access_token = decrypt_secret(record.token_encrypted, settings.token_encryption_key)
    except (SecretDecryptionError, SecretKeyError) as exc:
        raise _auth_error("認証情報の復号に失敗しました。再接続してください。") from exc

    expires_at = as_utc(record.expires_at)
    if expires_at is not None and expires_at - utcnow() <= REFRESH_THRESHOLD:
        if not record.refresh_token_encrypted:
            raise await _require_reauth(
                session, organization_id, actor_user_id,
                "認証の有効期限が近づいています。Googleで再接続してください。",
                "refresh_token_missing",
            )
        try:
            refresh_token = decrypt_secret(record.refresh_token_encrypted, settings.token_encryption_key)
            refreshed = await refresh_google_access_token(settings, refresh_token, client=client)
            access_token = refreshed["access_token"]
            expires_at = utcnow() + timedelta(seconds=int(refreshed.get("expires_in") or 3600))
            new_refresh = refreshed.get("refresh_token")
            await upsert_provider_account(
                session,
                organization_id,
                GBP,
                token_encrypted=encrypt_secret(access_token, settings.token_encryption_key),
                refresh_token_encrypted=(
                    encrypt_secret(new_refresh, settings.token_encryption_key) if new_refresh else None
                ),
                expires_at=expires_at,
                scopes=refreshed["scope"].split() if refreshed.get("scope") else None,
                metadata={"reauth_required": False, "last_error": None},
            )
            logger.info("Refreshed Google access token for org %s", organization_id)
        except (HttpError, httpx.HTTPError, ProviderError, SecretDecryptionError, SecretKeyError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Google token refresh failed for org %s: %s", organization_id, exc)
            raise await _require_reauth(
                session, organization_id, actor_user_id,
                "認証の更新に失敗しました。Googleで再接続してください。",
                "refresh_failed",
            ) from exc

    return ProviderAccount(
        provider=GBP,
        external_account_id=record.external_account_id,
        display_name=record.display_name,
        auth=ProviderAuth(access_token=access_token, expires_at=expires_at, scopes=record.scopes or []),
        metadata=metadata,
    )


async def _require_link(
    session: AsyncSession, location_id: str
) -> LocationProviderLinkRow:
    link = await LocationProviderLinkRepository(session).get_for(location_id, GBP.value)
    if link is None:
        raise ProviderError(GBP, ProviderErrorCode.VALIDATION_ERROR, "GBPロケーションが未紐付けです。")
    return link


async def sync_google_reviews(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    organization_id: str,
    location_id: str,
    actor_user_id: str | None = None,
) -> int:
    """Fetch reviews for one linked location and upsert them. Returns the count."""
    link = await _require_link(session, location_id)
    adapter = registry.get(GBP)
    account = await ensure_google_access_token(
        session, settings, organization_id, actor_user_id, client=adapter.client
    )
    reviews = await adapter.list_reviews(
        ProviderRequestContext(
            organization_id=organization_id,
            location_id=location_id,
            external_location_id=link.external_location_id,
            account=account,
        )
    )
    count = await upsert_reviews(session, GBP, location_id, reviews)

    await LocationProviderLinkRepository(session).update(
        link,
        metadata_json={
            **(link.metadata_json or {}),
            "last_review_sync_at": utcnow().isoformat(),
            "last_review_sync_count": count,
        },
    )
    audit_metadata: dict[str, Any] = {"provider": GBP.value, "count": count}
    if settings.provider_mock_mode:
        audit_metadata["mocked"] = True
    await write_audit_log(
        session,
        action="reviews.sync",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="location",
        target_id=location_id,
        metadata=audit_metadata,
    )
    return count


async def list_google_location_candidates(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    organization_id: str,
    actor_user_id: str | None = None,
) -> list[ProviderLocation]:
    adapter = registry.get(GBP)
    account = await ensure_google_access_token(
        session, settings, organization_id, actor_user_id, client=adapter.client
    )
    return await adapter.list_locations(
        ProviderRequestContext(organization_id=organization_id, account=account)
    )


async def link_google_location(
    session: AsyncSession,
    organization_id: str,
    location_id: str,
    external_location_id: str,
    metadata: dict[str, Any] | None = None,
    actor_user_id: str | None = None,
) -> LocationProviderLinkRow:
    repo = LocationProviderLinkRepository(session)
    link = await repo.get_for(location_id, GBP.value)
    if link is None:
        link = await repo.create(
            id=generate_id("lnk_"),
            location_id=location_id,
            provider=GBP.value,
            external_location_id=external_location_id,
            metadata_json=dict(metadata or {}),
        )
    else:
        link = await repo.update(
            link,
            external_location_id=external_location_id,
            metadata_json={**(link.metadata_json or {}), **(metadata or {})},
        )

    await write_audit_log(
        session,
        action="provider.link_location",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="location",
        target_id=location_id,
        metadata={"provider": GBP.value, "external_location_id": external_location_id},
    )
    return link


async def reply_google_review_for_location(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    organization_id: str,
    location_id: str,
    review_id: str,
    reply_text: str,
    actor_user_id: str | None = None,
) -> None:
    review = await ReviewRepository(session).get(review_id)
    if review is None:
        raise ProviderError(GBP, ProviderErrorCode.VALIDATION_ERROR, "対象レビューが見つかりません。")
    link = await _require_link(session, location_id)

    adapter = registry.get(GBP)
    account = await ensure_google_access_token(
        session, settings, organization_id, actor_user_id, client=adapter.client
    )
    await adapter.reply_review(
        ProviderRequestContext(
            organization_id=organization_id,
            location_id=location_id,
            external_location_id=link.external_location_id,
            account=account,
        ),
        review.external_review_id,
        reply_text,
    )
    await record_review_reply(session, review, reply_text)

    audit_metadata: dict[str, Any] = {"provider": GBP.value}
    if settings.provider_mock_mode:
        audit_metadata["mocked"] = True
    await write_audit_log(
        session,
        action="reviews.reply",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="review",
        target_id=review_id,
        metadata=audit_metadata,
    )
