"""Post-commit achievement unlock broadcasts (Redis pub/sub)."""

from __future__ import annotations

import json
import logging

from ballot.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

ACHIEVEMENT_CHANNEL = "pubsub:achievement_unlocked"


async def publish_unlocked(
    redis: object,
    fid: int,
    achievements: list[AchievementDefinition],
) -> int:
    """Publish one message per unlocked achievement. Returns number published.

    Delivery is best-effort: the vote is already committed, so a Redis
    failure is logged and never propagated.
    """
    if redis is None or not achievements:
        return 0

    published = 0
    for achievement in achievements:
        try:
            await redis.publish(  # type: ignore[union-attr]
                ACHIEVEMENT_CHANNEL,
                json.dumps({
                    "fid": fid,
                    "achievement_id": achievement.id,
                    "name": achievement.name,
                    "type": achievement.type,
                    "badge_icon": achievement.badge_icon,
                }),
            )
            published += 1
        except Exception:
            logger.warning("Failed to publish achievement_unlocked notification", exc_info=True)
    return published
