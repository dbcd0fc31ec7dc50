"""Signed OAuth ``state`` parameter.

A state is ``<base64url(json payload)>.<base64url(HMAC-SHA256)>``, signed with
the token encryption key. It carries the provider, organization and optional
location across the provider's consent screen.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
import uuid
from dataclasses import asdict, dataclass

from teppen.models.enums import ProviderType
from teppen.utils.crypto import load_key

STATE_VERSION = "v1"
DEFAULT_MAX_AGE_MS = 10 * 60 * 1000


class OAuthStateError(ValueError):
    """State is malformed, forged, or expired."""


@dataclass(frozen=True)
class OAuthStatePayload:
    v: str
    provider: ProviderType
    organization_id: str
    created_at: int
    nonce: str
    location_id: str | None = None


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(encoded: str, raw_key: str | None) -> str:
    digest = hmac.new(load_key(raw_key), encoded.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _now_ms() -> int:
    return int(time.time() * 1000)


def create_oauth_state(
    provider: ProviderType,
    organization_id: str,
    raw_key: str | None,
    location_id: str | None = None,
    created_at: int | None = None,
) -> str:
    """Build a signed state value. ``created_at`` is epoch milliseconds."""
    payload = OAuthStatePayload(
        v=STATE_VERSION,
        provider=ProviderType(provider),
        organization_id=organization_id,
        location_id=location_id,
        created_at=created_at if created_at is not None else _now_ms(),
        nonce=str(uuid.uuid4()),
    )
    encoded = _b64url_encode(
        json.dumps(asdict(payload), separators=(",", ":")).encode("utf-8")
    )
    return f"{encoded}.{_sign(encoded, raw_key)}"


def verify_oauth_state(
    state: str,
    raw_key: str | None,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    now_ms: int | None = None,
) -> OAuthStatePayload:
    """Check signature, version and age; return the decoded payload."""
    encoded, _, signature = state.partition(".")
    if not encoded or not signature:
        raise OAuthStateError("認証状態が不正です。もう一度接続してください。")

    expected = _sign(encoded, raw_key)
    if not hmac.compare_digest(signature.encode("ascii", "replace"), expected.encode("ascii")):
        raise OAuthStateError("認証状態の検証に失敗しました。もう一度接続してください。")

    try:
        raw = json.loads(_b64url_decode(encoded).decode("utf-8"))
        payload = OAuthStatePayload(
            v=raw["v"],
            provider=ProviderType(raw["provider"]),
            organization_id=raw["organization_id"],
            location_id=raw.get("location_id"),
            created_at=int(raw["created_at"]),
            nonce=raw["nonce"],
        )
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise OAuthStateError("認証状態が不正です。もう一度接続してください。") from exc

    if payload.v != STATE_VERSION:
        raise OAuthStateError("認証状態が不正です。もう一度接続してください。")

    current = now_ms if now_ms is not None else _now_ms()
    if current - payload.created_at > max_age_ms:
        raise OAuthStateError("認証状態の有効期限が切れました。もう一度接続してください。")
    return payload
