"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teppen.config import Settings
from teppen.db.engine import create_db_engine, create_session_factory
from teppen.logging_config import configure_logging
from teppen.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    settings: Settings = app.state.settings
    db_url = settings.effective_database_url
    engine = create_db_engine(settings)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        from teppen.db.base import Base
        import teppen.db.models  # noqa: F401  register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    logger.info(
        "TEPPEN API started (db=%s, mock_mode=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        settings.provider_mock_mode,
    )
    yield

    await engine.dispose()
    logger.info("TEPPEN API shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.json_logs and not settings.local_mode,
    )

    app = FastAPI(
        title="TEPPEN API",
        version="0.1.0",
        description="Job scheduler and provider sync backend for TEPPEN MEO.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.provider_registry = ProviderRegistry(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from teppen.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from teppen.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from teppen.api.routes import cron
    from teppen.api.router import api_router
    app.include_router(cron.router)
    app.include_router(api_router)

    return app


app = create_app()
