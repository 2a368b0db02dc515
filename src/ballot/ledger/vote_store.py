"""Vote store: one row per (fid, topic), claimed and locked by the coordinator."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ballot.database import insert_for
from ballot.db.models import Topic, Vote


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def is_topic_open(topic: Topic, now: datetime) -> bool:
    """Active, started, and not past its end date."""
    if not topic.is_active:
        return False
    if topic.start_date is not None and _as_utc(topic.start_date) > now:
        return False
    return topic.end_date is None or now <= _as_utc(topic.end_date)


async def get_open_topic(db: AsyncSession, topic_id: int, now: datetime) -> Topic | None:
    """Fetch a topic only if it is currently accepting votes."""
    topic = await db.get(Topic, topic_id)
    if topic is None or not is_topic_open(topic, now):
        return None
    return topic


async def claim_vote(
    db: AsyncSession,
    fid: int,
    topic_id: int,
    choice: str,
    now: datetime,
) -> bool:
    """Insert the vote row unless one exists. Returns True if this call created it.

    The unique key makes concurrent claims for the same pair queue behind
    each other: exactly one sees an inserted row, the rest see a conflict.
    """
    stmt = insert_for(db, Vote).values(
        fid=fid,
        topic_id=topic_id,
        choice=choice,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["fid", "topic_id"])
    result = await db.execute(stmt)
    return result.rowcount == 1


async def lock_vote(db: AsyncSession, fid: int, topic_id: int) -> Vote | None:
    """Load an existing vote row FOR UPDATE."""
    result = await db.execute(
        select(Vote)
        .where(Vote.fid == fid, Vote.topic_id == topic_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
