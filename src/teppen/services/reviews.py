"""Review storage keyed on (provider, external review id)."""

from sqlalchemy.ext.asyncio import AsyncSession

from teppen.db.base import utcnow
from teppen.db.models.review import ReviewRow
from teppen.models.enums import ProviderType
from teppen.providers.types import ProviderReview
from teppen.repositories.review_repo import ReviewRepository
from teppen.services.id_generator import generate_id


async def upsert_reviews(
    session: AsyncSession,
    provider: ProviderType,
    location_id: str,
    reviews: list[ProviderReview],
) -> int:
    """Insert new reviews and refresh existing ones. Returns the number written."""
    repo = ReviewRepository(session)
    count = 0
    for review in reviews:
        existing = await repo.get_by_external(provider.value, review.id)
        fields = {
            "location_id": location_id,
            "rating": review.rating,
            "comment": review.comment,
            "author": review.author,
            "created_at": review.created_at,
        }
        if existing is None:
            await repo.create(
                id=generate_id("rev_"),
                provider=provider.value,
                external_review_id=review.id,
                **fields,
            )
        else:
            await repo.update(existing, **fields)
        count += 1
    return count


async def record_review_reply(session: AsyncSession, review: ReviewRow, reply_text: str) -> ReviewRow:
    return await ReviewRepository(session).update(review, reply_text=reply_text, replied_at=utcnow())
