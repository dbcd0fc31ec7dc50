"""OAuth connect / callback / disconnect flows for providers."""

from __future__ import annotations

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.db.base import utcnow
from teppen.errors.exceptions import NotFoundError, ValidationError
from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.models.provider import ProviderConnection, ProviderConnectResponse
from teppen.providers.errors import ProviderError
from teppen.providers.google_gbp.oauth import map_google_callback_error, map_google_oauth_error
from teppen.providers.registry import ProviderRegistry
from teppen.services.audit_logs import write_audit_log
from teppen.services.provider_accounts import (
    clear_provider_account,
    mark_provider_error,
    upsert_provider_account,
)
from teppen.utils.crypto import encrypt_secret
from teppen.utils.http import HttpError
from teppen.utils.oauth_state import OAuthStateError, create_oauth_state, verify_oauth_state

logger = logging.getLogger(__name__)


def _require_connectable(registry: ProviderRegistry, provider: ProviderType):
    adapter = registry.get(provider)
    if not adapter.is_enabled():
        raise ProviderError(
            provider,
            ProviderErrorCode.NOT_CONFIGURED,
            f"{adapter.display_name}は無効化されています。",
        )
    if not adapter.supports("can_connect_oauth"):
        raise ProviderError(
            provider,
            ProviderErrorCode.NOT_SUPPORTED,
            f"{adapter.display_name}はOAuth接続に対応していません。",
        )
    return adapter


async def start_provider_connect(
    settings: Settings,
    registry: ProviderRegistry,
    provider: ProviderType,
    organization_id: str,
    location_id: str | None = None,
    redirect_uri: str | None = None,
) -> ProviderConnectResponse:
    """Sign a state and build the provider's consent URL."""
    adapter = _require_connectable(registry, provider)
    state = create_oauth_state(
        provider, organization_id, settings.token_encryption_key, location_id=location_id
    )
    auth_url = await adapter.get_auth_url(state, redirect_uri)
    return ProviderConnectResponse(provider=provider, auth_url=auth_url, state=state)


def _oauth_failure_message(provider: ProviderType, error: BaseException) -> str:
    if provider == ProviderType.GOOGLE_BUSINESS_PROFILE:
        return map_google_oauth_error(error)
    if isinstance(error, ProviderError):
        return error.message
    return "認証に失敗しました。もう一度接続してください。"


async def complete_provider_connect(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    provider: ProviderType,
    *,
    state: str | None,
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    actor_user_id: str | None = None,
    redirect_uri: str | None = None,
) -> ProviderConnection:
    """Handle the provider redirect.

    An unverifiable state raises ``ValidationError`` before anything is
    written. Every later failure is recorded on the account and audited as
    ``provider.connect_failed``, then returned with ``connected=False`` so
    the caller can commit the record before reporting the error.
    """
    if not state:
        raise ValidationError("認証状態が不正です。もう一度接続してください。")
    try:
        payload = verify_oauth_state(state, settings.token_encryption_key)
    except OAuthStateError as exc:
        raise ValidationError(str(exc)) from exc
    if payload.provider != provider:
        raise ValidationError("認証状態の検証に失敗しました。もう一度接続してください。")

    organization_id = payload.organization_id

    async def fail(reason: str, message: str) -> ProviderConnection:
        await mark_provider_error(session, organization_id, provider, message)
        await write_audit_log(
            session,
            action="provider.connect_failed",
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            target_type="provider",
            target_id=provider.value,
            metadata={"reason": reason},
        )
        return ProviderConnection(
            provider=provider,
            organization_id=organization_id,
            location_id=payload.location_id,
            connected=False,
            reason=reason,
            message=message,
        )

    if error:
        if provider == ProviderType.GOOGLE_BUSINESS_PROFILE:
            message = map_google_callback_error(error, error_description)
        else:
            message = "認証に失敗しました。もう一度接続してください。"
        return await fail(error, message)

    if not code:
        return await fail("code_missing", "認可コードが取得できませんでした。もう一度接続してください。")

    adapter = _require_connectable(registry, provider)
    try:
        result = await adapter.handle_oauth_callback(code, redirect_uri)
    except (HttpError, httpx.HTTPError, ProviderError, KeyError) as exc:
        logger.warning("OAuth token exchange failed for %s org %s: %s", provider.value, organization_id, exc)
        return await fail("token_exchange_failed", _oauth_failure_message(provider, exc))

    api_access = result.metadata.get("api_access")
    api_message = result.metadata.get("api_access_message")
    metadata = {
        "account_name": result.display_name,
        "reauth_required": False,
        "last_error": api_message if api_access is False else None,
        "connected_at": utcnow().isoformat(),
        "requested_scopes": result.scopes,
    }
    if api_access is not None:
        metadata["api_access"] = api_access

    key = settings.token_encryption_key
    account = await upsert_provider_account(
        session,
        organization_id,
        provider,
        external_account_id=result.external_account_id,
        display_name=result.display_name or f"{adapter.display_name}アカウント",
        token_encrypted=encrypt_secret(result.access_token, key),
        refresh_token_encrypted=encrypt_secret(result.refresh_token, key) if result.refresh_token else None,
        scopes=result.scopes or None,
        expires_at=result.expires_at,
        metadata=metadata,
    )
    audit_metadata = {"api_access": api_access} if api_access is not None else {}
    await write_audit_log(
        session,
        action="provider.connect",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="provider",
        target_id=provider.value,
        metadata=audit_metadata,
    )
    logger.info("Connected %s for org %s", provider.value, organization_id)

    return ProviderConnection(
        provider=provider,
        organization_id=organization_id,
        location_id=payload.location_id,
        connected=True,
        message=api_message if api_access is False else None,
        external_account_id=account.external_account_id,
        display_name=account.display_name,
        expires_at=account.expires_at,
        scopes=account.scopes or [],
        api_access=api_access,
    )


async def disconnect_provider(
    session: AsyncSession,
    provider: ProviderType,
    organization_id: str,
    actor_user_id: str | None = None,
) -> None:
    removed = await clear_provider_account(session, organization_id, provider)
    if not removed:
        raise NotFoundError("ProviderAccount", f"{organization_id}/{provider.value}")
    await write_audit_log(
        session,
        action="provider.disconnect",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="provider",
        target_id=provider.value,
    )
