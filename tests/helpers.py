"""Shared test helpers for building a ledger database."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ballot.config import get_settings
from ballot.database import get_engine, get_session_factory, init_db
from ballot.db.base import Base
from ballot.db.models import AchievementDefinition, AchievementGrant, Category, Topic, UserStreak, Vote
from ballot.ledger.seed import seed_achievements

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


async def setup_ledger(
    db_path: str,
    monkeypatch: pytest.MonkeyPatch,
    **env: str,
) -> async_sessionmaker[AsyncSession]:
    """Point settings at a fresh SQLite file, create the schema and seed the catalog."""
    url = f"sqlite+aiosqlite:///{db_path}"
    monkeypatch.setenv("BALLOT_DATABASE_URL", url)
    monkeypatch.setenv("BALLOT_LOG_FORMAT", "console")
    monkeypatch.setenv("BALLOT_VOTE_RETRY_BACKOFF_MS", "5")
    for key, value in env.items():
        monkeypatch.setenv(f"BALLOT_{key.upper()}", value)
    get_settings.cache_clear()

    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = get_session_factory()
    async with factory() as db:
        await seed_achievements(db)
    return factory


async def create_topic(
    factory: async_sessionmaker[AsyncSession],
    name: str = "Coffee vs Tea",
    *,
    is_active: bool = True,
    start_date: datetime = LONG_AGO,
    end_date: datetime | None = None,
    category_id: int | None = None,
) -> int:
    async with factory() as db:
        topic = Topic(
            name=name,
            option_a=name.split(" vs ")[0],
            option_b=name.split(" vs ")[-1],
            votes_a=0,
            votes_b=0,
            is_active=is_active,
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
        )
        db.add(topic)
        await db.commit()
        return topic.id


async def create_category(factory: async_sessionmaker[AsyncSession], name: str) -> int:
    async with factory() as db:
        category = Category(name=name)
        db.add(category)
        await db.commit()
        return category.id


async def add_definition(
    factory: async_sessionmaker[AsyncSession],
    name: str,
    type_: str,
    threshold: int,
) -> int:
    async with factory() as db:
        definition = AchievementDefinition(
            name=name, description=name, type=type_, threshold=threshold, is_active=True
        )
        db.add(definition)
        await db.commit()
        return definition.id


async def achievement_id(factory: async_sessionmaker[AsyncSession], name: str) -> int:
    async with factory() as db:
        result = await db.execute(
            select(AchievementDefinition.id).where(AchievementDefinition.name == name)
        )
        return result.scalar_one()


async def count_votes(factory: async_sessionmaker[AsyncSession], topic_id: int, choice: str | None = None) -> int:
    async with factory() as db:
        stmt = select(func.count()).select_from(Vote).where(Vote.topic_id == topic_id)
        if choice is not None:
            stmt = stmt.where(Vote.choice == choice)
        return (await db.execute(stmt)).scalar_one()


async def topic_tally(factory: async_sessionmaker[AsyncSession], topic_id: int) -> tuple[int, int]:
    async with factory() as db:
        row = (await db.execute(select(Topic.votes_a, Topic.votes_b).where(Topic.id == topic_id))).one()
        return row.votes_a, row.votes_b


async def streak_row(factory: async_sessionmaker[AsyncSession], fid: int) -> UserStreak | None:
    async with factory() as db:
        return (await db.execute(select(UserStreak).where(UserStreak.fid == fid))).scalar_one_or_none()


async def grant_count(factory: async_sessionmaker[AsyncSession], fid: int, achievement: int | None = None) -> int:
    async with factory() as db:
        stmt = select(func.count()).select_from(AchievementGrant).where(AchievementGrant.fid == fid)
        if achievement is not None:
            stmt = stmt.where(AchievementGrant.achievement_id == achievement)
        return (await db.execute(stmt)).scalar_one()
