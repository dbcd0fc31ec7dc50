"""CLI entry point that runs one scheduler tick and prints the result as JSON.

Intended for an external scheduler (cron, a platform job runner). Exit code 1
means the tick itself could not run; per-organization failures are reported
in the JSON body.
"""

import argparse
import asyncio
import json
import logging
import sys

from teppen.config import Settings
from teppen.db.engine import create_db_engine, create_session_factory
from teppen.logging_config import configure_logging
from teppen.models.job import SchedulerTickResult
from teppen.providers.registry import ProviderRegistry
from teppen.workers.gbp_bulk_review_sync import GBP_BULK_REVIEW_SYNC_JOB_KEY
from teppen.workers.scheduler import run_scheduler_tick

logger = logging.getLogger(__name__)


async def run_tick(settings: Settings, limit: int | None, job_key: str) -> SchedulerTickResult:
    engine = create_db_engine(settings)
    try:
        return await run_scheduler_tick(
            create_session_factory(engine),
            settings,
            ProviderRegistry(settings),
            limit_organizations=limit,
            job_key=job_key,
        )
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="teppen-jobs-tick",
        description="Run due job schedules once and print the tick result",
    )
    parser.add_argument("--limit", type=int, default=None, help="Max organizations per tick")
    parser.add_argument("--job-key", default=GBP_BULK_REVIEW_SYNC_JOB_KEY, help="Job key to run")
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(log_level=settings.log_level, json_output=settings.json_logs)

    try:
        result = asyncio.run(run_tick(settings, args.limit, args.job_key))
    except Exception as exc:
        logger.exception("Scheduler tick crashed")
        print(f"teppen-jobs-tick: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_json_dict(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
