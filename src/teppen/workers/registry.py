"""Handler registry mapping job keys to handler classes."""

from teppen.workers.base import JobHandler


def _build_registry() -> dict[str, type[JobHandler]]:
    from teppen.workers.gbp_bulk_review_sync import GbpBulkReviewSyncHandler

    return {
        GbpBulkReviewSyncHandler.job_key: GbpBulkReviewSyncHandler,
    }


_registry: dict[str, type[JobHandler]] = {}


def _ensure_registry() -> None:
    if not _registry:
        _registry.update(_build_registry())


def register_handler(job_key: str, handler_class: type[JobHandler]) -> None:
    """Register a handler class for a job key."""
    _ensure_registry()
    _registry[job_key] = handler_class


def get_handler(job_key: str) -> JobHandler | None:
    """Get a handler instance for a job key."""
    _ensure_registry()
    cls = _registry.get(job_key)
    return cls() if cls else None
