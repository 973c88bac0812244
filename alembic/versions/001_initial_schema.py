"""Initial schema: profiles, questions, sessions, matches, queue, daily challenges.

Ids are VARCHAR(36) UUID strings; profile ids equal the auth provider's user id.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(36) PRIMARY KEY,
            username VARCHAR(32) UNIQUE NOT NULL,
            iq_rating INTEGER NOT NULL DEFAULT 1000 CHECK (iq_rating >= 0),
            practice_rating INTEGER NOT NULL DEFAULT 1000 CHECK (practice_rating >= 0),
            wins INTEGER NOT NULL DEFAULT 0,
            losses INTEGER NOT NULL DEFAULT 0,
            total_games INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Questions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS questions (
            id VARCHAR(36) PRIMARY KEY,
            question TEXT NOT NULL,
            answer VARCHAR(100) NOT NULL,
            difficulty VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_questions_difficulty
        ON questions(difficulty)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS answer_verification_attempts (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            question_id VARCHAR(36) NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
            attempted_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_answer_verification_attempts_user_time
        ON answer_verification_attempts(user_id, attempted_at)
    """)

    # --- Daily Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_challenges (
            id VARCHAR(36) PRIMARY KEY,
            challenge_date DATE UNIQUE NOT NULL,
            difficulty VARCHAR(16) NOT NULL,
            time_control VARCHAR(16) NOT NULL,
            target_score INTEGER NOT NULL,
            reward_practice_rating INTEGER NOT NULL DEFAULT 0,
            reward_iq_rating INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenge_completions (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            challenge_id VARCHAR(36) NOT NULL REFERENCES daily_challenges(id) ON DELETE CASCADE,
            score_achieved INTEGER NOT NULL,
            completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_challenge_completions_user_challenge UNIQUE (user_id, challenge_id)
        )
    """)

    # --- Solo Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_sessions (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            difficulty VARCHAR(16) NOT NULL,
            time_control VARCHAR(16) NOT NULL,
            total_questions INTEGER NOT NULL,
            score INTEGER NOT NULL DEFAULT 0,
            is_completed BOOLEAN NOT NULL DEFAULT FALSE,
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            challenge_id VARCHAR(36) REFERENCES daily_challenges(id) ON DELETE SET NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_game_sessions_user
        ON game_sessions(user_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_answers (
            id VARCHAR(36) PRIMARY KEY,
            game_session_id VARCHAR(36) NOT NULL REFERENCES game_sessions(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            question_id VARCHAR(36) NOT NULL REFERENCES questions(id),
            user_answer VARCHAR(100) NOT NULL,
            is_correct BOOLEAN NOT NULL,
            answered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_game_answers_session_user_question UNIQUE (game_session_id, user_id, question_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_game_answers_game_session_id
        ON game_answers(game_session_id)
    """)

    # --- Matches ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS matches (
            id VARCHAR(36) PRIMARY KEY,
            player1_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            player2_id VARCHAR(36) REFERENCES profiles(id) ON DELETE CASCADE,
            difficulty VARCHAR(16) NOT NULL,
            time_control VARCHAR(16) NOT NULL,
            player1_score INTEGER NOT NULL DEFAULT 0,
            player2_score INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'waiting',
            winner_id VARCHAR(36) REFERENCES profiles(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            CHECK (status IN ('waiting', 'in_progress', 'completed'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_matches_status
        ON matches(status)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS match_answers (
            id VARCHAR(36) PRIMARY KEY,
            match_id VARCHAR(36) NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            question_id VARCHAR(36) NOT NULL REFERENCES questions(id),
            user_answer VARCHAR(100) NOT NULL,
            is_correct BOOLEAN NOT NULL,
            answered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_match_answers_match_user_question UNIQUE (match_id, user_id, question_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_match_answers_match_id
        ON match_answers(match_id)
    """)

    # --- Matchmaking Queue ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS matchmaking_queue (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) UNIQUE NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            difficulty VARCHAR(16) NOT NULL,
            time_control VARCHAR(16) NOT NULL,
            iq_rating INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_matchmaking_queue_bucket
        ON matchmaking_queue(difficulty, time_control, created_at)
    """)


def downgrade() -> None:
    for table in (
        "matchmaking_queue",
        "match_answers",
        "matches",
        "game_answers",
        "game_sessions",
        "user_challenge_completions",
        "daily_challenges",
        "answer_verification_attempts",
        "questions",
        "profiles",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
