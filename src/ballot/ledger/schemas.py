"""Pydantic request/response models for vote ledger endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Votes ---


class VoteRequest(BaseModel):
    topic_id: int = Field(gt=0)
    fid: int = Field(gt=0)
    choice: str


class TallyResponse(BaseModel):
    topic_id: int
    votes_a: int
    votes_b: int
    total_votes: int
    percentage_a: int = 0
    percentage_b: int = 0
    is_contested: bool = False


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    total_votes: int
    last_vote_date: date | None = None


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    type: str
    threshold: int
    badge_icon: str | None = None
    badge_color: str | None = None


class VoteUserSummary(BaseModel):
    streak: StreakResponse
    has_rare_opinion: bool = False
    new_achievements: list[AchievementResponse] = []


class VoteResponse(BaseModel):
    success: bool = True
    outcome: str
    message: str
    choice: str
    stats: TallyResponse
    user: VoteUserSummary


# --- Achievements ---


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]


class EarnedAchievementResponse(BaseModel):
    achievement: AchievementResponse
    earned_at: datetime


class UserAchievementsResponse(BaseModel):
    earned: list[EarnedAchievementResponse]
    total_available: int
    total_earned: int
