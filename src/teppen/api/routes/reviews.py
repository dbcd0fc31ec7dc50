"""Review sync, bulk sync, location link and reply endpoints."""

from fastapi import APIRouter
from pydantic import Field

from teppen.api.routes._lookup import require_location, require_organization
from teppen.dependencies import ActorUserId, AppSettings, DBSession, Registry
from teppen.errors.exceptions import ConflictError
from teppen.models.common import CamelModel
from teppen.providers.errors import ProviderError
from teppen.services.audit_logs import write_audit_log
from teppen.services.google_business_profile import (
    link_google_location,
    list_google_location_candidates,
    reply_google_review_for_location,
    sync_google_reviews,
)
from teppen.workers.gbp_bulk_review_sync import run_gbp_bulk_review_sync

router = APIRouter()


class LinkLocationRequest(CamelModel):
    external_location_id: str = Field(..., min_length=1)
    name: str | None = None
    address: str | None = None


class ReplyRequest(CamelModel):
    reply_text: str = Field(..., min_length=1, max_length=4096)


@router.post("/organizations/{organization_id}/reviews/bulk-sync")
async def bulk_sync_reviews(
    organization_id: str,
    db: DBSession,
    settings: AppSettings,
    registry: Registry,
    actor_user_id: ActorUserId,
) -> dict:
    """Sync reviews of every GBP-linked location of the organization now."""
    await require_organization(db, organization_id)
    result = await run_gbp_bulk_review_sync(db, settings, registry, organization_id, actor_user_id)
    if not result.ok:
        raise ConflictError(result.reason or result.message)
    return result.model_dump(mode="json")


@router.get("/organizations/{organization_id}/google/locations")
async def google_location_candidates(
    organization_id: str,
    db: DBSession,
    settings: AppSettings,
    registry: Registry,
    actor_user_id: ActorUserId,
) -> list[dict]:
    await require_organization(db, organization_id)
    try:
        locations = await list_google_location_candidates(
            db, settings, registry, organization_id, actor_user_id
        )
    finally:
        # Reauth markers written while resolving the token must survive
        await db.commit()
    return [location.model_dump(mode="json") for location in locations]


@router.put("/organizations/{organization_id}/locations/{location_id}/google-link")
async def link_location(
    organization_id: str,
    location_id: str,
    body: LinkLocationRequest,
    db: DBSession,
    actor_user_id: ActorUserId,
) -> dict:
    await require_location(db, organization_id, location_id)
    metadata = {key: value for key, value in {"name": body.name, "address": body.address}.items() if value}
    link = await link_google_location(
        db,
        organization_id,
        location_id,
        body.external_location_id,
        metadata=metadata,
        actor_user_id=actor_user_id,
    )
    await db.commit()
    return {
        "locationId": link.location_id,
        "provider": link.provider,
        "externalLocationId": link.external_location_id,
        "metadata": link.metadata_json or {},
    }


@router.post("/organizations/{organization_id}/locations/{location_id}/reviews/sync")
async def sync_location_reviews(
    organization_id: str,
    location_id: str,
    db: DBSession,
    settings: AppSettings,
    registry: Registry,
    actor_user_id: ActorUserId,
) -> dict:
    await require_location(db, organization_id, location_id)
    try:
        count = await sync_google_reviews(
            db, settings, registry, organization_id, location_id, actor_user_id
        )
    except ProviderError as exc:
        await write_audit_log(
            db,
            action="reviews.sync_failed",
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            target_type="location",
            target_id=location_id,
            metadata={"provider": exc.provider.value, "code": exc.code.value, "message": exc.message},
        )
        await db.commit()
        raise
    await db.commit()
    return {"locationId": location_id, "count": count, "mockMode": settings.provider_mock_mode}


@router.post("/organizations/{organization_id}/locations/{location_id}/reviews/{review_id}/reply")
async def reply_review(
    organization_id: str,
    location_id: str,
    review_id: str,
    body: ReplyRequest,
    db: DBSession,
    settings: AppSettings,
    registry: Registry,
    actor_user_id: ActorUserId,
) -> dict:
    await require_location(db, organization_id, location_id)
    try:
        await reply_google_review_for_location(
            db,
            settings,
            registry,
            organization_id,
            location_id,
            review_id,
            body.reply_text,
            actor_user_id,
        )
    except ProviderError as exc:
        await write_audit_log(
            db,
            action="reviews.reply_failed",
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            target_type="review",
            target_id=review_id,
            metadata={"provider": exc.provider.value, "code": exc.code.value, "message": exc.message},
        )
        await db.commit()
        raise
    await db.commit()
    return {"reviewId": review_id, "replied": True}
