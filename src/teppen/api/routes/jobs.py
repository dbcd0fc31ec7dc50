"""Job run ledger endpoints."""

from fastapi import APIRouter, Query

from teppen.dependencies import DBSession
from teppen.errors.exceptions import NotFoundError
from teppen.repositories.job_run_repo import JobRunRepository
from teppen.workers.job_runs import list_job_run_items, list_job_runs, to_job_run

router = APIRouter()


@router.get("/jobs/runs")
async def get_job_runs(
    db: DBSession,
    organization_id: str | None = Query(None, alias="organizationId"),
    limit: int = Query(50, ge=1, le=200),
) -> list[dict]:
    runs = await list_job_runs(db, limit=limit, organization_id=organization_id)
    return [run.to_json_dict() for run in runs]


@router.get("/jobs/runs/{run_id}")
async def get_job_run(run_id: str, db: DBSession) -> dict:
    row = await JobRunRepository(db).get(run_id)
    if row is None:
        raise NotFoundError("JobRun", run_id)
    return to_job_run(row).to_json_dict()


@router.get("/jobs/runs/{run_id}/items")
async def get_job_run_items(run_id: str, db: DBSession) -> list[dict]:
    if await JobRunRepository(db).get(run_id) is None:
        raise NotFoundError("JobRun", run_id)
    return [item.to_json_dict() for item in await list_job_run_items(db, run_id)]
