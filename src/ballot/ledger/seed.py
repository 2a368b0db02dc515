"""Achievement catalog seed data."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ballot.database import insert_for
from ballot.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Streaks
    {
        "name": "Streak Starter",
        "description": "Vote on 3 consecutive days",
        "badge_icon": "\U0001f525",
        "badge_color": "from-yellow-600 to-orange-600",
        "type": "streak",
        "threshold": 3,
    },
    {
        "name": "Streak Master",
        "description": "Vote on 7 consecutive days",
        "badge_icon": "\U0001f525\U0001f525",
        "badge_color": "from-orange-600 to-red-600",
        "type": "streak",
        "threshold": 7,
    },
    # Lifetime votes
    {
        "name": "Dedicated Voter",
        "description": "Cast 10 total votes",
        "badge_icon": "\U0001f5f3\ufe0f",
        "badge_color": "from-blue-600 to-blue-400",
        "type": "votes",
        "threshold": 10,
    },
    {
        "name": "Power Voter",
        "description": "Cast 50 total votes",
        "badge_icon": "\U0001f5f3\ufe0f\U0001f5f3\ufe0f",
        "badge_color": "from-blue-600 to-purple-600",
        "type": "votes",
        "threshold": 50,
    },
    # Per-vote
    {
        "name": "Rare Opinion",
        "description": "Vote with the minority (30% or less)",
        "badge_icon": "\U0001f984",
        "badge_color": "from-indigo-600 to-purple-600",
        "type": "rare",
        "threshold": 1,
    },
    {
        "name": "Trendsetter",
        "description": "Be one of the first 10 voters on a topic",
        "badge_icon": "\U0001f31f",
        "badge_color": "from-yellow-400 to-yellow-600",
        "type": "early",
        "threshold": 1,
    },
    # Data owned elsewhere
    {
        "name": "Category Expert",
        "description": "Vote on all topics in a category",
        "badge_icon": "\U0001f3c6",
        "badge_color": "from-purple-600 to-pink-600",
        "type": "categories",
        "threshold": 1,
    },
    {
        "name": "Spreading the Word",
        "description": "Share an achievement with your friends",
        "badge_icon": "\U0001f4e3",
        "badge_color": "from-green-600 to-teal-600",
        "type": "social",
        "threshold": 1,
    },
    # No rule evaluates "divisive" yet; seeded inactive so it stays out of the catalog.
    {
        "name": "Controversy Lover",
        "description": "Vote on 5 highly contested topics",
        "badge_icon": "\u2694\ufe0f",
        "badge_color": "from-red-600 to-orange-600",
        "type": "divisive",
        "threshold": 5,
        "is_active": False,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the achievement catalog by name. Returns number of definitions seeded.

    `is_active` is only set on first insert; re-seeding never re-enables or
    disables an existing definition.
    """
    seeded = 0
    for achievement_data in ACHIEVEMENT_SEED_DATA:
        stmt = insert_for(db, AchievementDefinition).values(**achievement_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={
                "description": stmt.excluded.description,
                "badge_icon": stmt.excluded.badge_icon,
                "badge_color": stmt.excluded.badge_color,
                "type": stmt.excluded.type,
                "threshold": stmt.excluded.threshold,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded
