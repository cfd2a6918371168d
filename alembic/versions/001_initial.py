"""Initial schema: profiles, posts, applications, matches, reviews, messages, notifications.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            username VARCHAR(32) UNIQUE NOT NULL,
            display_name VARCHAR(64) NOT NULL,
            avatar_url TEXT,
            university VARCHAR(128),
            notification_settings JSONB,
            is_banned BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Posts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            type VARCHAR(16) NOT NULL CHECK (type IN ('teach', 'learn')),
            status VARCHAR(16) NOT NULL DEFAULT 'open',
            max_applicants INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_user ON posts(user_id)")

    # --- Applications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS applications (
            id UUID PRIMARY KEY,
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            applicant_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            message TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'accepted', 'rejected')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_applications_post_applicant
        ON applications(post_id, applicant_id)
    """)

    # --- Matches ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS matches (
            id UUID PRIMARY KEY,
            application_id UUID UNIQUE NOT NULL REFERENCES applications(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'completed', 'cancelled')),
            matched_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_by UUID REFERENCES profiles(id),
            completed_at TIMESTAMPTZ,
            confirmed_by UUID REFERENCES profiles(id),
            confirmed_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            cancel_reason TEXT,
            CHECK (confirmed_by IS NULL OR confirmed_by <> completed_by)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_matches_active
        ON matches(status) WHERE status = 'active'
    """)

    # --- Reviews ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reviews (
            id UUID PRIMARY KEY,
            match_id UUID NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
            reviewer_id UUID NOT NULL REFERENCES profiles(id),
            reviewee_id UUID NOT NULL REFERENCES profiles(id),
            reviewer_role VARCHAR(8) NOT NULL CHECK (reviewer_role IN ('senpai', 'kouhai')),
            badges JSONB NOT NULL DEFAULT '[]',
            comment TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_reviews_match_reviewer UNIQUE (match_id, reviewer_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_reviews_reviewee_id ON reviews(reviewee_id)")

    # --- Messages ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id UUID PRIMARY KEY,
            match_id UUID NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
            sender_id UUID NOT NULL REFERENCES profiles(id),
            content TEXT NOT NULL,
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_messages_match_created
        ON messages(match_id, created_at)
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT,
            link VARCHAR(256),
            read BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_notifications_user_read
        ON notifications(user_id, read)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_created
        ON notifications(created_at)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS messages CASCADE")
    op.execute("DROP TABLE IF EXISTS reviews CASCADE")
    op.execute("DROP TABLE IF EXISTS matches CASCADE")
    op.execute("DROP TABLE IF EXISTS applications CASCADE")
    op.execute("DROP TABLE IF EXISTS posts CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
