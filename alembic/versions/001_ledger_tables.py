"""Vote ledger tables.

Creates categories, topics, votes, user_streaks, achievement_definitions
and achievement_grants. The unique keys on votes(fid, topic_id),
user_streaks(fid) and achievement_grants(fid, achievement_id) are what
serialize concurrent vote submissions.

Revision ID: 001_ledger_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_ledger_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Categories / Topics (owned by topic administration) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS topics (
            id SERIAL PRIMARY KEY,
            name VARCHAR(256) NOT NULL,
            option_a VARCHAR(128) NOT NULL,
            option_b VARCHAR(128) NOT NULL,
            votes_a INTEGER NOT NULL DEFAULT 0,
            votes_b INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            start_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            end_date TIMESTAMPTZ,
            category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
            CONSTRAINT ck_topics_votes_non_negative CHECK (votes_a >= 0 AND votes_b >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_topics_active_start
        ON topics(is_active, start_date DESC)
    """)

    # --- Votes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS votes (
            id SERIAL PRIMARY KEY,
            fid BIGINT NOT NULL,
            topic_id INTEGER NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            choice VARCHAR(1) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_votes_fid_topic UNIQUE (fid, topic_id),
            CONSTRAINT ck_votes_choice CHECK (choice IN ('A', 'B'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_votes_fid ON votes(fid)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_votes_topic_id ON votes(topic_id)")

    # --- User Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            fid BIGINT PRIMARY KEY,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            total_votes INTEGER NOT NULL DEFAULT 0,
            last_vote_date DATE,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_user_streaks_longest CHECK (longest_streak >= current_streak)
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            badge_icon VARCHAR(32),
            badge_color VARCHAR(64),
            type VARCHAR(32) NOT NULL,
            threshold INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_achievement_definitions_type
        ON achievement_definitions(type)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_grants (
            id SERIAL PRIMARY KEY,
            fid BIGINT NOT NULL,
            achievement_id INTEGER NOT NULL REFERENCES achievement_definitions(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_achievement_grants_fid_achievement UNIQUE (fid, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_achievement_grants_fid ON achievement_grants(fid)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS achievement_grants CASCADE")
    op.execute("DROP TABLE IF EXISTS achievement_definitions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS votes CASCADE")
    op.execute("DROP TABLE IF EXISTS topics CASCADE")
    op.execute("DROP TABLE IF EXISTS categories CASCADE")
