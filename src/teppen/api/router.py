"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from teppen.api.routes import audit, health, job_schedules, jobs, providers, reviews

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(providers.router, tags=["Providers"])
api_router.include_router(job_schedules.router, tags=["Job schedules"])
api_router.include_router(reviews.router, tags=["Reviews"])
api_router.include_router(jobs.router, tags=["Jobs"])
api_router.include_router(audit.router, tags=["Audit"])
