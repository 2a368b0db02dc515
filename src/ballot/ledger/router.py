"""Vote ledger API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ballot.config import get_settings
from ballot.database import get_session
from ballot.db.models import AchievementDefinition, AchievementGrant, Topic
from ballot.dependencies import get_redis_dep, get_session_factory_dep
from ballot.ledger.coordinator import VoteOutcome, submit_vote
from ballot.ledger.errors import InvalidChoice, TopicUnavailable, TransientStoreError
from ballot.ledger.notify import publish_unlocked
from ballot.ledger.schemas import (
    AchievementResponse,
    AllAchievementsResponse,
    EarnedAchievementResponse,
    StreakResponse,
    TallyResponse,
    UserAchievementsResponse,
    VoteRequest,
    VoteResponse,
    VoteUserSummary,
)
from ballot.ledger.streak_tracker import StreakState, get_streak
from ballot.ledger.tally import TallySnapshot

router = APIRouter(prefix="/api/v1", tags=["Votes"])

_MESSAGES = {
    VoteOutcome.RECORDED: "Vote recorded successfully",
    VoteOutcome.CHANGED: "Vote updated successfully",
    VoteOutcome.UNCHANGED: "Same choice already recorded",
}


def _tally_response(tally: TallySnapshot) -> TallyResponse:
    settings = get_settings()
    return TallyResponse(
        topic_id=tally.topic_id,
        votes_a=tally.votes_a,
        votes_b=tally.votes_b,
        total_votes=tally.total,
        percentage_a=tally.percentage_a,
        percentage_b=tally.percentage_b,
        is_contested=tally.is_contested(settings.contested_min_votes, settings.contested_max_difference),
    )


def _streak_response(streak: StreakState) -> StreakResponse:
    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        total_votes=streak.total_votes,
        last_vote_date=streak.last_vote_date,
    )


# ── Votes ──


@router.post("/votes", response_model=VoteResponse)
async def cast_vote(
    body: VoteRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dep),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Record, change or confirm a vote; returns tally, streak and new achievements."""
    try:
        result = await submit_vote(session_factory, body.fid, body.topic_id, body.choice)
    except InvalidChoice as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TopicUnavailable as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except TransientStoreError as e:
        raise HTTPException(
            status_code=503,
            detail="Vote could not be recorded right now. Please retry.",
            headers={"Retry-After": "1"},
        ) from e

    unlocked: list[AchievementDefinition] = []
    if result.newly_granted:
        rows = await db.execute(
            select(AchievementDefinition)
            .where(AchievementDefinition.id.in_(result.newly_granted))
            .order_by(AchievementDefinition.id)
        )
        unlocked = list(rows.scalars())
        await publish_unlocked(redis, body.fid, unlocked)

    settings = get_settings()
    return VoteResponse(
        outcome=result.outcome.value,
        message=_MESSAGES[result.outcome],
        choice=result.choice,
        stats=_tally_response(result.tally),
        user=VoteUserSummary(
            streak=_streak_response(result.streak),
            has_rare_opinion=result.tally.is_rare(
                result.choice,
                settings.rare_opinion_min_votes,
                settings.rare_opinion_max_percentage,
            ),
            new_achievements=[AchievementResponse.model_validate(a) for a in unlocked],
        ),
    )


@router.get("/votes/topic/{topic_id}", response_model=TallyResponse)
async def get_topic_votes(topic_id: int, db: AsyncSession = Depends(get_session)):
    """Vote counts for a topic, open or closed."""
    topic = await db.get(Topic, topic_id)
    if topic is None:
        raise HTTPException(status_code=404, detail="Topic not found")
    return _tally_response(TallySnapshot(topic.id, topic.votes_a, topic.votes_b))


# ── Users ──


@router.get("/users/{fid}/streak", response_model=StreakResponse)
async def get_user_streak(fid: int, db: AsyncSession = Depends(get_session)):
    """Streak summary; zeros for users who never voted."""
    return _streak_response(await get_streak(db, fid))


@router.get("/users/{fid}/achievements", response_model=UserAchievementsResponse)
async def get_user_achievements(fid: int, db: AsyncSession = Depends(get_session)):
    """Achievements earned by a user, most recent first."""
    result = await db.execute(
        select(AchievementGrant)
        .where(AchievementGrant.fid == fid)
        .order_by(AchievementGrant.earned_at.desc(), AchievementGrant.id.desc())
    )
    grants = result.scalars().all()

    total_available = await db.execute(
        select(func.count())
        .select_from(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
    )

    return UserAchievementsResponse(
        earned=[
            EarnedAchievementResponse(
                achievement=AchievementResponse.model_validate(g.achievement),
                earned_at=g.earned_at,
            )
            for g in grants
        ],
        total_available=total_available.scalar_one(),
        total_earned=len(grants),
    )


# ── Catalog ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Active achievement catalog."""
    result = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.id)
    )
    return AllAchievementsResponse(
        achievements=[AchievementResponse.model_validate(a) for a in result.scalars()]
    )
