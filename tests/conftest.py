"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ballot.config import get_settings
from ballot.database import close_db
from tests.helpers import setup_ledger


@pytest_asyncio.fixture
async def ledger(tmp_path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh, seeded SQLite database."""
    factory = await setup_ledger(str(tmp_path / "ledger.db"), monkeypatch)
    yield factory
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(ledger: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for test assertions."""
    async with ledger() as session:
        yield session


@pytest_asyncio.fixture
async def client(ledger: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client; the database is already initialized by `ledger`."""
    from ballot.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
