"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from teppen.config import Settings
from teppen.providers.registry import ProviderRegistry


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.provider_registry


def get_actor_user_id(request: Request) -> str | None:
    """Acting user id forwarded by the fronting app, if any."""
    return request.headers.get("x-actor-user-id") or None


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Registry = Annotated[ProviderRegistry, Depends(get_registry)]
ActorUserId = Annotated[str | None, Depends(get_actor_user_id)]
