"""Matchmaking tracking: when a player last joined the queue, and how a match was made.

``profiles.last_queued_at`` is set on every queue join and cleared on leave.
``matches.source`` is 'matchmaking' for queue pairings, 'direct' otherwise.
Queue status only reports matchmaking matches started after the last join.

Revision ID: 002_matchmaking_tracking
Revises: 001_initial_schema
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_matchmaking_tracking"
down_revision: str | None = "001_initial_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE profiles ADD COLUMN IF NOT EXISTS last_queued_at TIMESTAMPTZ")
    op.execute("""
        ALTER TABLE matches
        ADD COLUMN IF NOT EXISTS source VARCHAR(16) NOT NULL DEFAULT 'direct'
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_matches_source_status
        ON matches(source, status)
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_matches_source_status")
    op.execute("ALTER TABLE matches DROP COLUMN IF EXISTS source")
    op.execute("ALTER TABLE profiles DROP COLUMN IF EXISTS last_queued_at")
