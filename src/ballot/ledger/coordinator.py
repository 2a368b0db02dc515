"""Vote transaction coordinator.

One call to submit_vote() is one transaction: claim the (fid, topic) vote
row, adjust the topic tally, advance the streak and grant achievements,
then commit. Nothing is held in process memory between calls; concurrent
callers are serialized only by the database's row locks and unique keys.
Lock order within a transaction is always vote -> topic -> streak ->
grants, so concurrent submissions cannot deadlock each other.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ballot.config import get_settings
from ballot.ledger.achievements import (
    DEFAULT_PROVIDERS,
    AchievementEvaluator,
    MetricProvider,
    VoteContext,
)
from ballot.ledger.errors import InvalidChoice, TopicUnavailable, TransientStoreError
from ballot.ledger.streak_tracker import StreakState, get_streak, register_vote
from ballot.ledger.tally import CHOICES, TallySnapshot, adjust_tally, read_tally
from ballot.ledger.vote_store import claim_vote, get_open_topic, lock_vote

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03", "57014"})


class _StaleClaim(Exception):
    """The conflicting vote row was gone by the time we locked it."""

    def __init__(self, fid: int, topic_id: int) -> None:
        super().__init__(f"vote row for fid={fid} topic={topic_id} vanished between claim and lock")


class VoteOutcome(str, enum.Enum):
    RECORDED = "recorded"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass
class VoteResult:
    """What a submission left behind, as committed.

    `accepted` is True for every returned result, including an idempotent
    repeat; rejected submissions raise instead.
    """

    outcome: VoteOutcome
    fid: int
    topic_id: int
    choice: str
    tally: TallySnapshot
    streak: StreakState
    newly_granted: list[int] = field(default_factory=list)
    accepted: bool = True


def is_transient_error(exc: BaseException) -> bool:
    """Whether a store failure is a concurrency artifact worth retrying."""
    if isinstance(exc, (PoolTimeoutError, _StaleClaim)):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    # A lost uniqueness race: the retry observes the winner's row.
    if isinstance(exc, (OperationalError, IntegrityError)) or exc.connection_invalidated:
        return True
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in _TRANSIENT_SQLSTATES


def validate_choice(choice: object) -> str:
    if not isinstance(choice, str) or choice not in CHOICES:
        raise InvalidChoice(choice)
    return choice


async def _set_lock_timeout(db: AsyncSession, lock_timeout_ms: int) -> None:
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))


async def apply_vote(
    db: AsyncSession,
    fid: int,
    topic_id: int,
    choice: str,
    now: datetime,
    providers: dict[str, MetricProvider] | None = None,
) -> VoteResult:
    """Apply one submission inside an already-open transaction."""
    settings = get_settings()

    topic = await get_open_topic(db, topic_id, now)
    if topic is None:
        raise TopicUnavailable(topic_id)

    newly_granted: list[int] = []

    if await claim_vote(db, fid, topic_id, choice, now):
        outcome = VoteOutcome.RECORDED
        await adjust_tally(db, topic_id, increment=choice)
        streak = await register_vote(db, fid, now)
        tally = await read_tally(db, topic_id)
        evaluator = AchievementEvaluator(
            db, providers=DEFAULT_PROVIDERS if providers is None else providers
        )
        newly_granted = await evaluator.evaluate_and_grant(
            fid,
            streak,
            VoteContext(
                topic_id=topic_id,
                choice=choice,
                tally=tally,
                early_voter_limit=settings.early_voter_limit,
                rare_min_votes=settings.rare_opinion_min_votes,
                rare_max_percentage=settings.rare_opinion_max_percentage,
            ),
        )
    else:
        vote = await lock_vote(db, fid, topic_id)
        if vote is None:
            # Claimed by a transaction that then rolled back; retry from scratch.
            raise _StaleClaim(fid, topic_id)

        if vote.choice != choice:
            outcome = VoteOutcome.CHANGED
            previous = vote.choice
            vote.choice = choice
            vote.updated_at = now
            await db.flush()
            await adjust_tally(db, topic_id, increment=choice, decrement=previous)
        else:
            outcome = VoteOutcome.UNCHANGED

        streak = await get_streak(db, fid)
        tally = await read_tally(db, topic_id)

    return VoteResult(
        outcome=outcome,
        fid=fid,
        topic_id=topic_id,
        choice=choice,
        tally=tally,
        streak=streak,
        newly_granted=newly_granted,
    )


async def submit_vote(
    session_factory: async_sessionmaker[AsyncSession],
    fid: int,
    topic_id: int,
    choice: str,
    now: datetime | None = None,
    providers: dict[str, MetricProvider] | None = None,
) -> VoteResult:
    """Record, change or confirm a user's vote as one atomic, idempotent unit.

    Raises InvalidChoice or TopicUnavailable for bad input; retries
    transient store conflicts up to `vote_max_attempts` times and then
    raises TransientStoreError with all state rolled back.

    `now` defaults to the current time; a naive value is taken as UTC and
    an aware one is converted, so the streak day is always the UTC date.
    """
    validate_choice(choice)
    settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    attempts = max(1, settings.vote_max_attempts)
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            async with session_factory() as db:
                async with db.begin():
                    await _set_lock_timeout(db, settings.vote_lock_timeout_ms)
                    result = await apply_vote(db, fid, topic_id, choice, now, providers)
        except (DBAPIError, PoolTimeoutError, _StaleClaim) as exc:
            if not is_transient_error(exc):
                raise
            last_error = exc
            logger.warning(
                "Vote transaction conflict (fid=%d topic=%d attempt %d/%d): %s",
                fid, topic_id, attempt, attempts, exc.__class__.__name__,
            )
            if attempt < attempts:
                await asyncio.sleep(settings.vote_retry_backoff_ms * attempt / 1000)
            continue

        logger.info(
            "Vote %s: fid=%d topic=%d choice=%s tally=%d/%d granted=%s",
            result.outcome.value, fid, topic_id, choice,
            result.tally.votes_a, result.tally.votes_b, result.newly_granted,
        )
        return result

    raise TransientStoreError(attempts, last_error)
