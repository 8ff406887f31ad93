"""progression schema

Revision ID: 0001_progression_v1
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_progression_v1"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_progress",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_active_day", sa.Date(), nullable=True),
        sa.Column("quizzes_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("perfect_scores", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lessons_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subject_counts_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_progress_updated_at", "user_progress", ["updated_at"])

    op.create_table(
        "user_badges",
        sa.Column(
            "user_id",
            sa.String(),
            sa.ForeignKey("user_progress.user_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("badge_id", sa.String(), primary_key=True),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("catalog_version", sa.String(), nullable=False),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "daily_challenges",
        sa.Column(
            "user_id",
            sa.String(),
            sa.ForeignKey("user_progress.user_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("challenge_id", sa.String(), nullable=False, unique=True),
        sa.Column("template_key", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_subject", sa.String(), nullable=True),
        sa.Column("valid_on", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_daily_challenges_valid_on", "daily_challenges", ["valid_on"])

    op.create_table(
        "events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_events_user_id", "events", ["user_id"])
    op.create_index("ix_events_type", "events", ["type"])

    op.create_table(
        "xp_sync_outbox",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "idempotency_key", name="uq_xp_sync_outbox_idempotency_key"
        ),
    )
    op.create_index("ix_xp_sync_outbox_user_id", "xp_sync_outbox", ["user_id"])
    op.create_index("ix_xp_sync_outbox_status", "xp_sync_outbox", ["status"])
    op.create_index(
        "ix_xp_sync_outbox_next_attempt_at", "xp_sync_outbox", ["next_attempt_at"]
    )
    op.create_index("ix_xp_sync_outbox_created_at", "xp_sync_outbox", ["created_at"])


def downgrade() -> None:
    op.drop_table("xp_sync_outbox")
    op.drop_table("events")
    op.drop_table("daily_challenges")
    op.drop_table("user_badges")
    op.drop_table("user_progress")
