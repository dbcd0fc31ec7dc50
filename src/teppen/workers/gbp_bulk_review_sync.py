"""Bulk review sync across every GBP-linked location of an organization."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.models.enums import JobRunStatus, ProviderType
from teppen.models.job import JobRunSummary
from teppen.providers.errors import ProviderError, to_provider_error
from teppen.providers.registry import ProviderRegistry
from teppen.repositories.location_repo import LocationProviderLinkRepository, LocationRepository
from teppen.services.audit_logs import write_audit_log
from teppen.services.google_business_profile import sync_google_reviews
from teppen.workers.base import JobHandler, JobResult
from teppen.workers.job_runs import (
    JobRunItemInput,
    create_job_run,
    finalize_job_run,
    insert_job_run_items,
)

logger = logging.getLogger(__name__)

GBP_BULK_REVIEW_SYNC_JOB_KEY = "gbp_reviews_bulk_sync"

_MESSAGES = {
    JobRunStatus.SUCCEEDED: "一括同期が完了しました。",
    JobRunStatus.PARTIAL: "一部のロケーションで同期に失敗しました。",
    JobRunStatus.FAILED: "同期に失敗しました。",
}


class BulkReviewSyncItem(BaseModel):
    location_id: str
    status: JobRunStatus
    count: int = 0
    error: str | None = None


class BulkReviewSyncResult(JobResult):
    status: JobRunStatus
    summary: JobRunSummary = Field(default_factory=JobRunSummary)
    items: list[BulkReviewSyncItem] = Field(default_factory=list)


def overall_status(success_count: int, failed_count: int) -> JobRunStatus:
    if failed_count == 0:
        return JobRunStatus.SUCCEEDED
    if success_count == 0:
        return JobRunStatus.FAILED
    return JobRunStatus.PARTIAL


async def resolve_gbp_linked_locations(session: AsyncSession, organization_id: str) -> list[str]:
    """Location ids of the organization that have a GBP link, in location order."""
    locations = await LocationRepository(session).list_by_organization(organization_id)
    location_ids = [location.id for location in locations]
    links = await LocationProviderLinkRepository(session).list_for_locations(
        location_ids, ProviderType.GOOGLE_BUSINESS_PROFILE.value
    )
    linked = {link.location_id for link in links}
    return [location_id for location_id in location_ids if location_id in linked]


async def run_gbp_bulk_review_sync(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    organization_id: str,
    actor_user_id: str | None = None,
) -> BulkReviewSyncResult:
    """Claim a run, sync each linked location, then finalize and audit.

    A provider failure on one location is recorded as a failed item and the
    remaining locations still run. ``ok`` is False only when the run could
    not be claimed.
    """
    claim = await create_job_run(
        session, organization_id, GBP_BULK_REVIEW_SYNC_JOB_KEY, actor_user_id
    )
    if not claim.ok or not claim.run_id:
        return BulkReviewSyncResult(
            ok=False,
            status=JobRunStatus.FAILED,
            message="一括同期を開始できませんでした。",
            reason=claim.reason or "ジョブの開始に失敗しました。",
        )
    run_id = claim.run_id

    try:
        return await _sync_claimed_run(
            session, settings, registry, organization_id, run_id, actor_user_id
        )
    except Exception:
        # The claimed run must not stay "running"
        logger.exception("Bulk review sync %s for org %s aborted", run_id, organization_id)
        await session.rollback()
        await finalize_job_run(
            session,
            run_id,
            JobRunStatus.FAILED,
            JobRunSummary(mock_mode=settings.provider_mock_mode),
            error={"reason": "aborted"},
        )
        await session.commit()
        raise


async def _sync_claimed_run(
    session: AsyncSession,
    settings: Settings,
    registry: ProviderRegistry,
    organization_id: str,
    run_id: str,
    actor_user_id: str | None,
) -> BulkReviewSyncResult:
    mock_mode = settings.provider_mock_mode

    await write_audit_log(
        session,
        action="reviews.bulk_sync_start",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="job",
        target_id=run_id,
        metadata={"job_key": GBP_BULK_REVIEW_SYNC_JOB_KEY},
    )
    await session.commit()

    location_ids = await resolve_gbp_linked_locations(session, organization_id)

    if not location_ids:
        summary = JobRunSummary(mock_mode=mock_mode)
        await finalize_job_run(session, run_id, JobRunStatus.SUCCEEDED, summary)
        await write_audit_log(
            session,
            action="reviews.bulk_sync",
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            target_type="job",
            target_id=run_id,
            metadata={"job_key": GBP_BULK_REVIEW_SYNC_JOB_KEY, "summary": summary.model_dump()},
        )
        await session.commit()
        return BulkReviewSyncResult(
            ok=True,
            status=JobRunStatus.SUCCEEDED,
            summary=summary,
            message="同期対象のロケーションがありません。",
        )

    items: list[BulkReviewSyncItem] = []
    success_count = failed_count = review_count = 0

    for location_id in location_ids:
        try:
            count = await sync_google_reviews(
                session, settings, registry, organization_id, location_id, actor_user_id
            )
            await session.commit()
        except ProviderError as exc:
            # Keep reauth markers written before the failure
            await session.commit()
            logger.warning(
                "Review sync failed for location %s (%s): %s", location_id, exc.code, exc.message
            )
            items.append(
                BulkReviewSyncItem(location_id=location_id, status=JobRunStatus.FAILED, error=exc.message)
            )
            failed_count += 1
            continue
        except Exception as exc:
            await session.rollback()
            error = to_provider_error(ProviderType.GOOGLE_BUSINESS_PROFILE, exc)
            logger.exception("Unexpected error syncing location %s", location_id)
            items.append(
                BulkReviewSyncItem(location_id=location_id, status=JobRunStatus.FAILED, error=error.message)
            )
            failed_count += 1
            continue

        items.append(BulkReviewSyncItem(location_id=location_id, status=JobRunStatus.SUCCEEDED, count=count))
        success_count += 1
        review_count += count

    status = overall_status(success_count, failed_count)
    summary = JobRunSummary(
        total_locations=len(location_ids),
        success_count=success_count,
        failed_count=failed_count,
        review_count=review_count,
        mock_mode=mock_mode,
    )

    await insert_job_run_items(
        session,
        run_id,
        [
            JobRunItemInput(
                location_id=item.location_id,
                status=item.status,
                count=item.count,
                error={"reason": item.error} if item.error else {},
            )
            for item in items
        ],
    )
    await finalize_job_run(
        session,
        run_id,
        status,
        summary,
        error={"failed_count": failed_count} if failed_count else {},
    )
    await write_audit_log(
        session,
        action="reviews.bulk_sync",
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        target_type="job",
        target_id=run_id,
        metadata={
            "job_key": GBP_BULK_REVIEW_SYNC_JOB_KEY,
            "status": status.value,
            "summary": summary.model_dump(),
        },
    )
    await session.commit()

    logger.info(
        "Bulk review sync %s for org %s finished: %s (%d ok, %d failed, %d reviews)",
        run_id, organization_id, status.value, success_count, failed_count, review_count,
    )
    return BulkReviewSyncResult(
        ok=True,
        status=status,
        summary=summary,
        items=items,
        message=_MESSAGES[status],
        reason="失敗したロケーションがあります。" if failed_count else None,
    )


class GbpBulkReviewSyncHandler(JobHandler):
    job_key = GBP_BULK_REVIEW_SYNC_JOB_KEY

    async def run(
        self,
        session: AsyncSession,
        settings: Settings,
        registry: ProviderRegistry,
        organization_id: str,
        actor_user_id: str | None = None,
    ) -> BulkReviewSyncResult:
        return await run_gbp_bulk_review_sync(
            session, settings, registry, organization_id, actor_user_id
        )
