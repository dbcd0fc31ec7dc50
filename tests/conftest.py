"""Shared test fixtures."""

import secrets

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from teppen.config import Settings
from teppen.db.base import Base
# Import all models to register with Base.metadata
import teppen.db.models  # noqa: F401
from teppen.db.models.location import LocationProviderLinkRow, LocationRow
from teppen.db.models.organization import OrganizationRow
from teppen.providers.registry import ProviderRegistry

CRON_SECRET = "test-cron-secret"


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+aiosqlite:///",
        "token_encryption_key": secrets.token_hex(32),
        "cron_secret": CRON_SECRET,
        "provider_mock_mode": True,
        "json_logs": False,
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def registry(settings):
    return ProviderRegistry(settings)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


async def seed_organization(
    session: AsyncSession,
    org_id: str = "org-1",
    name: str = "TEPPEN 株式会社",
    linked_locations: int = 0,
) -> OrganizationRow:
    """Insert an organization and, optionally, GBP-linked locations."""
    org = OrganizationRow(id=org_id, name=name)
    session.add(org)
    for index in range(1, linked_locations + 1):
        location_id = f"{org_id}-loc-{index}"
        session.add(LocationRow(id=location_id, organization_id=org_id, name=f"店舗 {index}"))
        session.add(
            LocationProviderLinkRow(
                id=f"{location_id}-link",
                location_id=location_id,
                provider="google_gbp",
                external_location_id=f"locations/{org_id}-{index}",
                metadata_json={},
            )
        )
    await session.commit()
    return org


@pytest.fixture
def app(db_engine, session_factory, settings):
    """Create a test application instance with in-memory DB."""
    from teppen.main import create_app

    _app = create_app(settings)
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def seed_org():
    return seed_organization
