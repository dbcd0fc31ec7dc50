"""Provider status, OAuth connect/callback and disconnect endpoints."""

from fastapi import APIRouter, Query

from teppen.dependencies import ActorUserId, AppSettings, DBSession, Registry
from teppen.errors.exceptions import NotFoundError, ValidationError
from teppen.models.enums import ProviderType
from teppen.providers.types import ProviderSearchInput
from teppen.api.routes._lookup import require_organization
from teppen.services.provider_connections import (
    complete_provider_connect,
    disconnect_provider,
    start_provider_connect,
)
from teppen.services.provider_status import list_provider_status

router = APIRouter()


def _parse_provider(provider: str) -> ProviderType:
    try:
        return ProviderType(provider)
    except ValueError:
        raise NotFoundError("Provider", provider) from None


@router.get("/providers")
async def get_provider_status(registry: Registry) -> list[dict]:
    return [status.to_json_dict() for status in list_provider_status(registry)]


@router.get("/providers/{provider}/connect")
async def connect_provider(
    provider: str,
    settings: AppSettings,
    registry: Registry,
    db: DBSession,
    organization_id: str = Query(..., alias="organizationId"),
    location_id: str | None = Query(None, alias="locationId"),
    redirect_uri: str | None = Query(None, alias="redirectUri"),
) -> dict:
    """Return the consent URL and signed state for the provider."""
    provider_type = _parse_provider(provider)
    await require_organization(db, organization_id)
    response = await start_provider_connect(
        settings,
        registry,
        provider_type,
        organization_id,
        location_id=location_id,
        redirect_uri=redirect_uri,
    )
    return response.to_json_dict()


@router.get("/providers/{provider}/callback")
async def provider_callback(
    provider: str,
    settings: AppSettings,
    registry: Registry,
    db: DBSession,
    actor_user_id: ActorUserId,
    state: str | None = None,
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
) -> dict:
    provider_type = _parse_provider(provider)
    connection = await complete_provider_connect(
        db,
        settings,
        registry,
        provider_type,
        state=state,
        code=code,
        error=error,
        error_description=error_description,
        actor_user_id=actor_user_id,
    )
    # Failure records are kept even though the request fails
    await db.commit()
    if not connection.connected:
        raise ValidationError(
            connection.message or "認証に失敗しました。もう一度接続してください。",
            details={"reason": connection.reason},
        )
    return connection.to_json_dict()


@router.delete("/organizations/{organization_id}/providers/{provider}", status_code=204)
async def delete_provider_connection(
    organization_id: str,
    provider: str,
    db: DBSession,
    actor_user_id: ActorUserId,
) -> None:
    provider_type = _parse_provider(provider)
    await disconnect_provider(db, provider_type, organization_id, actor_user_id)
    await db.commit()


@router.get("/providers/{provider}/places")
async def search_places(
    provider: str,
    registry: Registry,
    q: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
) -> list[dict]:
    """Place search through a map provider (Bing Maps, Yahoo! YOLP)."""
    adapter = registry.get(_parse_provider(provider))
    results = await adapter.search_places(ProviderSearchInput(query=q, limit=limit))
    return [result.model_dump(mode="json", exclude={"raw"}) for result in results]
