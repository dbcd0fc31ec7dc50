"""Google OAuth 2.0 token endpoints and account checks."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from teppen.config import Settings
from teppen.models.enums import ProviderErrorCode, ProviderType
from teppen.providers.errors import ProviderError
from teppen.utils.http import HttpError, request_json

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v2/userinfo"
ACCOUNTS_ENDPOINT = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"

SCOPES = [
    "https://www.googleapis.com/auth/business.manage",
    "https://www.googleapis.com/auth/userinfo.profile",
]

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def require_google_credentials(settings: Settings) -> tuple[str, str]:
    if not settings.google_client_id or not settings.google_client_secret:
        raise ProviderError(
            ProviderType.GOOGLE_BUSINESS_PROFILE,
            ProviderErrorCode.NOT_CONFIGURED,
            "Google OAuthの認証情報が未設定です",
        )
    return settings.google_client_id, settings.google_client_secret


def resolve_redirect_uri(settings: Settings, redirect_uri: str | None = None) -> str:
    if redirect_uri:
        return redirect_uri
    if settings.google_redirect_uri:
        return settings.google_redirect_uri
    return f"{settings.app_base_url or ''}/api/v1/providers/google_gbp/callback"


def build_auth_url(settings: Settings, state: str, redirect_uri: str | None = None) -> str:
    client_id, _ = require_google_credentials(settings)
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": resolve_redirect_uri(settings, redirect_uri),
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
    )
    return f"{AUTH_ENDPOINT}?{query}"


async def exchange_code_for_token(
    settings: Settings,
    code: str,
    redirect_uri: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    client_id, client_secret = require_google_credentials(settings)
    return await request_json(
        TOKEN_ENDPOINT,
        "POST",
        headers=_FORM_HEADERS,
        data={
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        client=client,
    )


async def refresh_google_access_token(
    settings: Settings,
    refresh_token: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Trade a refresh token for a new access token. Raises HttpError on 4xx."""
    client_id, client_secret = require_google_credentials(settings)
    return await request_json(
        TOKEN_ENDPOINT,
        "POST",
        headers=_FORM_HEADERS,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        client=client,
    )


async def fetch_google_user_info(
    access_token: str, client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    return await request_json(
        USERINFO_ENDPOINT,
        headers={"Authorization": f"Bearer {access_token}"},
        client=client,
    )


async def check_google_api_access(
    access_token: str, client: httpx.AsyncClient | None = None
) -> tuple[bool, str | None]:
    """Probe the accounts API. Returns (ok, message)."""
    try:
        await request_json(
            ACCOUNTS_ENDPOINT,
            headers={"Authorization": f"Bearer {access_token}"},
            client=client,
        )
    except HttpError as exc:
        logger.info("Google API access check failed with HTTP %s", exc.status)
        return False, "Google Business ProfileのAPI承認が必要です。承認後に再接続してください。"
    except httpx.HTTPError as exc:
        logger.warning("Google API access check failed: %s", exc)
        return False, "Google Business ProfileのAPI確認に失敗しました。しばらく後で再接続してください。"
    return True, None


def map_google_oauth_error(error: BaseException) -> str:
    """Translate a token-endpoint failure into a reconnect message."""
    fallback = "認証に失敗しました。もう一度接続してください。"
    if not isinstance(error, HttpError):
        return fallback
    try:
        body = json.loads(error.body)
    except (json.JSONDecodeError, TypeError):
        return fallback
    if not isinstance(body, dict):
        return fallback

    code = body.get("error") or ""
    if code == "invalid_grant":
        return "認可コードが無効です。もう一度接続をやり直してください。"
    if code == "redirect_uri_mismatch":
        return "リダイレクトURIが一致しません。Google Cloudの設定を確認してください。"
    if code == "invalid_client":
        return "クライアントID/シークレットが無効です。環境変数を確認してください。"
    if body.get("error_description"):
        return f"認証に失敗しました: {body['error_description']}。もう一度接続してください。"
    return fallback


def map_google_callback_error(error: str, description: str | None = None) -> str:
    if error == "access_denied":
        return "Googleでアクセスが拒否されました。権限を許可して再接続してください。"
    if description:
        return f"認証に失敗しました: {description}。もう一度接続してください。"
    return "認証に失敗しました。もう一度接続してください。"
