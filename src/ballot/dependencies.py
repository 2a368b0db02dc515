"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ballot.database import get_session_factory
from ballot.redis_client import get_redis_or_none


def get_session_factory_dep() -> async_sessionmaker[AsyncSession]:
    """The vote coordinator opens its own session per attempt."""
    return get_session_factory()


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client (or None) as a FastAPI dependency."""
    yield get_redis_or_none()
