"""Daily voting streaks: the per-user state machine and its persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ballot.database import insert_for
from ballot.db.models import UserStreak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    total_votes: int = 0
    last_vote_date: date | None = None

    @classmethod
    def from_row(cls, row: UserStreak) -> StreakState:
        return cls(
            current_streak=row.current_streak,
            longest_streak=row.longest_streak,
            total_votes=row.total_votes,
            last_vote_date=row.last_vote_date,
        )


def advance_streak(state: StreakState, today: date) -> StreakState:
    """Apply one new vote cast on calendar day `today`.

    - first vote ever, or a gap of more than one day: streak restarts at 1
    - exactly one day since the last vote: streak grows by 1
    - same day (a second topic): streak unchanged
    - `today` earlier than the last vote (clock skew): streak unchanged and
      last_vote_date is not moved backwards

    The lifetime vote count always grows by one.
    """
    last = state.last_vote_date
    current = state.current_streak
    last_vote_date = today

    if last is None:
        current = 1
    else:
        gap = (today - last).days
        if gap == 1:
            current += 1
        elif gap > 1:
            current = 1
        elif gap < 0:
            last_vote_date = last
        # gap == 0 leaves the streak alone

    return replace(
        state,
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        total_votes=state.total_votes + 1,
        last_vote_date=last_vote_date,
    )


async def lock_streak(db: AsyncSession, fid: int, now: datetime) -> UserStreak:
    """Get or lazily create the streak row for a user, locked FOR UPDATE."""
    stmt = insert_for(db, UserStreak).values(
        fid=fid,
        current_streak=0,
        longest_streak=0,
        total_votes=0,
        last_vote_date=None,
        updated_at=now,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["fid"]))

    result = await db.execute(
        select(UserStreak)
        .where(UserStreak.fid == fid)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def register_vote(db: AsyncSession, fid: int, now: datetime) -> StreakState:
    """Advance a user's streak for a new vote. Must run in the vote's transaction."""
    row = await lock_streak(db, fid, now)
    before = StreakState.from_row(row)
    after = advance_streak(before, now.date())

    row.current_streak = after.current_streak
    row.longest_streak = after.longest_streak
    row.total_votes = after.total_votes
    row.last_vote_date = after.last_vote_date
    row.updated_at = now
    await db.flush()

    if after.current_streak < before.current_streak:
        logger.debug("Streak reset for fid=%d (was %d)", fid, before.current_streak)
    return after


async def get_streak(db: AsyncSession, fid: int) -> StreakState:
    """Read a user's streak; users who never voted get the zero state."""
    result = await db.execute(select(UserStreak).where(UserStreak.fid == fid))
    row = result.scalar_one_or_none()
    return StreakState.from_row(row) if row is not None else StreakState()
