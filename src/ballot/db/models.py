"""ORM models for the vote ledger.

Topics and categories are owned by topic administration; the ledger only
reads them and adjusts the topic tally columns. Votes, streaks and
achievement grants are written exclusively by the vote coordinator.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ballot.db.base import Base


# ---------------------------------------------------------------------------
# Topics (read-only here, except the tally columns)
# ---------------------------------------------------------------------------


class Category(Base):
    """Topic category, used by the category achievements."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Topic(Base):
    """Daily binary-choice question with denormalized vote tallies."""

    __tablename__ = "topics"
    __table_args__ = (
        CheckConstraint("votes_a >= 0 AND votes_b >= 0", name="ck_topics_votes_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    option_a: Mapped[str] = mapped_column(String(128), nullable=False)
    option_b: Mapped[str] = mapped_column(String(128), nullable=False)
    votes_a: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    votes_b: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    category: Mapped[Category | None] = relationship("Category", lazy="joined")


# ---------------------------------------------------------------------------
# Ledger tables
# ---------------------------------------------------------------------------


class Vote(Base):
    """One user's choice on one topic. UNIQUE(fid, topic_id)."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("fid", "topic_id", name="uq_votes_fid_topic"),
        CheckConstraint("choice IN ('A', 'B')", name="ck_votes_choice"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fid: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    choice: Mapped[str] = mapped_column(String(1), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class UserStreak(Base):
    """Per-user daily voting streak and lifetime vote count."""

    __tablename__ = "user_streaks"
    __table_args__ = (
        CheckConstraint("longest_streak >= current_streak", name="ck_user_streaks_longest"),
    )

    fid: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_vote_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class AchievementDefinition(Base):
    """Achievement catalog entry. Seeded on startup, read-only to the ledger."""

    __tablename__ = "achievement_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    badge_icon: Mapped[str | None] = mapped_column(String(32), nullable=True)
    badge_color: Mapped[str | None] = mapped_column(String(64), nullable=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())


class AchievementGrant(Base):
    """Achievements earned by users. UNIQUE(fid, achievement_id), append-only."""

    __tablename__ = "achievement_grants"
    __table_args__ = (
        UniqueConstraint("fid", "achievement_id", name="uq_achievement_grants_fid_achievement"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fid: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievement_definitions.id"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    achievement: Mapped[AchievementDefinition] = relationship("AchievementDefinition", lazy="joined")
