"""Provider account persistence: tokens stay encrypted, metadata is merged."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.base import utcnow
from teppen.db.models.provider_account import ProviderAccountRow
from teppen.models.enums import ProviderType
from teppen.repositories.provider_account_repo import ProviderAccountRepository
from teppen.services.id_generator import generate_id

logger = logging.getLogger(__name__)


async def get_provider_account(
    session: AsyncSession, organization_id: str, provider: ProviderType
) -> ProviderAccountRow | None:
    return await ProviderAccountRepository(session).get_for(organization_id, provider.value)


async def upsert_provider_account(
    session: AsyncSession,
    organization_id: str,
    provider: ProviderType,
    *,
    external_account_id: str | None = None,
    display_name: str | None = None,
    token_encrypted: str | None = None,
    refresh_token_encrypted: str | None = None,
    scopes: list[str] | None = None,
    expires_at: datetime | None = None,
    metadata: dict[str, Any] | None = None,
) -> ProviderAccountRow:
    """Create or update the account for (organization, provider).

    ``None`` arguments keep the stored value, so a refresh that returns no new
    refresh token keeps the old one. ``metadata`` is shallow-merged.
    """
    repo = ProviderAccountRepository(session)
    existing = await repo.get_for(organization_id, provider.value)

    if existing is None:
        return await repo.create(
            id=generate_id("pac_"),
            organization_id=organization_id,
            provider=provider.value,
            external_account_id=external_account_id,
            display_name=display_name,
            token_encrypted=token_encrypted,
            refresh_token_encrypted=refresh_token_encrypted,
            scopes=scopes or [],
            expires_at=expires_at,
            metadata_json=dict(metadata or {}),
        )

    merged = {**(existing.metadata_json or {}), **(metadata or {})}
    return await repo.update(
        existing,
        external_account_id=external_account_id or existing.external_account_id,
        display_name=display_name or existing.display_name,
        token_encrypted=token_encrypted or existing.token_encrypted,
        refresh_token_encrypted=refresh_token_encrypted or existing.refresh_token_encrypted,
        scopes=scopes if scopes is not None else existing.scopes,
        expires_at=expires_at or existing.expires_at,
        metadata_json=merged,
    )


async def mark_provider_error(
    session: AsyncSession,
    organization_id: str,
    provider: ProviderType,
    message: str,
    reauth_required: bool = False,
) -> ProviderAccountRow:
    logger.warning(
        "Provider %s error for org %s (reauth_required=%s): %s",
        provider.value, organization_id, reauth_required, message,
    )
    return await upsert_provider_account(
        session,
        organization_id,
        provider,
        metadata={
            "last_error": message,
            "reauth_required": reauth_required,
            "error_at": utcnow().isoformat(),
        },
    )


async def clear_provider_account(
    session: AsyncSession, organization_id: str, provider: ProviderType
) -> bool:
    """Delete the stored account. Returns False when nothing was connected."""
    repo = ProviderAccountRepository(session)
    existing = await repo.get_for(organization_id, provider.value)
    if existing is None:
        return False
    await repo.delete(existing)
    return True
