"""Achievement evaluator and grant store.

Each achievement type maps to a rule: the metric it reads and how that
metric is compared against the definition's threshold. Adding a type means
adding a rule (and, for data the ledger does not own, a metric provider);
the vote coordinator never changes.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ballot.database import insert_for
from ballot.db.models import AchievementDefinition, AchievementGrant, Topic, Vote
from ballot.ledger.streak_tracker import StreakState
from ballot.ledger.tally import TallySnapshot

logger = logging.getLogger(__name__)

MetricProvider = Callable[[AsyncSession, int], Awaitable[int]]


@dataclass(frozen=True)
class AchievementRule:
    metric: str
    comparator: Callable[[int, int], bool] = operator.ge


# --- Rule table: achievement type -> metric + comparator ---
RULES: dict[str, AchievementRule] = {
    "votes": AchievementRule("total_votes"),
    "streak": AchievementRule("current_streak"),
    "early": AchievementRule("early_vote"),
    "rare": AchievementRule("rare_opinion"),
    "social": AchievementRule("achievement_shares"),
    "categories": AchievementRule("completed_categories"),
}


@dataclass(frozen=True)
class VoteContext:
    """The new vote that triggered evaluation, with the post-update tally."""

    topic_id: int
    choice: str
    tally: TallySnapshot
    early_voter_limit: int = 10
    rare_min_votes: int = 20
    rare_max_percentage: float = 30.0

    @property
    def is_early(self) -> bool:
        return self.tally.total <= self.early_voter_limit

    @property
    def is_rare(self) -> bool:
        return self.tally.is_rare(self.choice, self.rare_min_votes, self.rare_max_percentage)


async def completed_category_count(db: AsyncSession, fid: int) -> int:
    """Number of categories in which the user has voted on every topic."""
    topics_per_category = (
        select(Topic.category_id, func.count(Topic.id).label("topics"))
        .where(Topic.category_id.is_not(None))
        .group_by(Topic.category_id)
        .subquery()
    )
    voted_per_category = (
        select(Topic.category_id, func.count(Vote.id).label("voted"))
        .join(Vote, Vote.topic_id == Topic.id)
        .where(Vote.fid == fid, Topic.category_id.is_not(None))
        .group_by(Topic.category_id)
        .subquery()
    )
    result = await db.execute(
        select(func.count())
        .select_from(
            topics_per_category.join(
                voted_per_category,
                topics_per_category.c.category_id == voted_per_category.c.category_id,
            )
        )
        .where(voted_per_category.c.voted >= topics_per_category.c.topics)
    )
    return int(result.scalar_one())


DEFAULT_PROVIDERS: dict[str, MetricProvider] = {
    "completed_categories": completed_category_count,
}


async def get_granted_ids(db: AsyncSession, fid: int) -> set[int]:
    result = await db.execute(
        select(AchievementGrant.achievement_id).where(AchievementGrant.fid == fid)
    )
    return set(result.scalars())


async def grant_achievement(db: AsyncSession, fid: int, achievement_id: int) -> bool:
    """Insert a grant. Returns False if it already existed (including a concurrent grant)."""
    stmt = insert_for(db, AchievementGrant).values(fid=fid, achievement_id=achievement_id)
    stmt = stmt.on_conflict_do_nothing(index_elements=["fid", "achievement_id"])
    result = await db.execute(stmt)
    return result.rowcount == 1


@dataclass
class AchievementEvaluator:
    """Evaluates the catalog for one user inside the caller's transaction."""

    db: AsyncSession
    providers: Mapping[str, MetricProvider] = field(default_factory=lambda: dict(DEFAULT_PROVIDERS))
    rules: Mapping[str, AchievementRule] = field(default_factory=lambda: dict(RULES))

    async def _load_definitions(self) -> list[AchievementDefinition]:
        result = await self.db.execute(
            select(AchievementDefinition)
            .where(AchievementDefinition.is_active.is_(True))
            .order_by(AchievementDefinition.id)
        )
        return list(result.scalars())

    def _builtin_metrics(self, streak: StreakState, vote: VoteContext | None) -> dict[str, int]:
        metrics = {
            "total_votes": streak.total_votes,
            "current_streak": streak.current_streak,
        }
        if vote is not None:
            metrics["early_vote"] = int(vote.is_early)
            metrics["rare_opinion"] = int(vote.is_rare)
        return metrics

    async def evaluate_and_grant(
        self,
        fid: int,
        streak: StreakState,
        vote: VoteContext | None = None,
    ) -> list[int]:
        """Grant every not-yet-earned achievement whose rule now holds.

        Returns the ids granted by this call, in catalog order. Metrics with
        neither a built-in value nor a provider are skipped.
        """
        definitions = await self._load_definitions()
        granted = await get_granted_ids(self.db, fid)
        metrics = self._builtin_metrics(streak, vote)
        newly_granted: list[int] = []

        for definition in definitions:
            if definition.id in granted:
                continue
            rule = self.rules.get(definition.type)
            if rule is None:
                logger.warning("No rule for achievement type %r (%s)", definition.type, definition.name)
                continue

            if rule.metric not in metrics:
                provider = self.providers.get(rule.metric)
                if provider is None:
                    continue
                metrics[rule.metric] = await provider(self.db, fid)

            if not rule.comparator(metrics[rule.metric], definition.threshold):
                continue

            if await grant_achievement(self.db, fid, definition.id):
                logger.info("Achievement granted: fid=%d achievement=%s", fid, definition.name)
                newly_granted.append(definition.id)

        return newly_granted
