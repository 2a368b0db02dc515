"""Topic tally accessors and derived vote statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ballot.db.models import Topic

CHOICES: tuple[str, str] = ("A", "B")

_COLUMNS = {"A": Topic.votes_a, "B": Topic.votes_b}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class TallySnapshot:
    """Vote counts for one topic as seen inside a transaction."""

    topic_id: int
    votes_a: int
    votes_b: int

    @property
    def total(self) -> int:
        return self.votes_a + self.votes_b

    def count_for(self, choice: str) -> int:
        return self.votes_a if choice == "A" else self.votes_b

    @property
    def percentage_a(self) -> int:
        return _round_half_up(self.votes_a * 100 / self.total) if self.total else 0

    @property
    def percentage_b(self) -> int:
        return _round_half_up(self.votes_b * 100 / self.total) if self.total else 0

    def is_contested(self, min_votes: int = 10, max_difference: float = 10.0) -> bool:
        """True when the split is within max_difference points with enough votes."""
        if self.total < min_votes:
            return False
        difference = abs(self.votes_a - self.votes_b) * 100 / self.total
        return difference <= max_difference

    def is_rare(self, choice: str, min_votes: int = 20, max_percentage: float = 30.0) -> bool:
        """True when choice is a minority position of at most max_percentage."""
        if self.total < min_votes:
            return False
        return self.count_for(choice) * 100 / self.total <= max_percentage


async def adjust_tally(
    db: AsyncSession,
    topic_id: int,
    increment: str,
    decrement: str | None = None,
) -> None:
    """Atomically add one vote to `increment` and optionally remove one from `decrement`.

    The UPDATE is a single read-modify-write in the database, so concurrent
    transactions never lose an increment.
    """
    values = {_COLUMNS[increment].key: _COLUMNS[increment] + 1}
    if decrement is not None:
        values[_COLUMNS[decrement].key] = _COLUMNS[decrement] - 1

    await db.execute(
        update(Topic)
        .where(Topic.id == topic_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def read_tally(db: AsyncSession, topic_id: int) -> TallySnapshot | None:
    """Read the current counters, bypassing any stale identity-map state."""
    result = await db.execute(
        select(Topic.votes_a, Topic.votes_b).where(Topic.id == topic_id)
    )
    row = result.one_or_none()
    if row is None:
        return None
    return TallySnapshot(topic_id=topic_id, votes_a=row.votes_a, votes_b=row.votes_b)
