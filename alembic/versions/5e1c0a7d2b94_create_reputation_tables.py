"""Create reputation ledger, tier and achievement progress tables

Revision ID: 5e1c0a7d2b94
Revises:
Create Date: 2026-10-19 09:12:31.604118

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5e1c0a7d2b94'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the five reputation tables."""

    # --- point_transactions (append-only ledger) ---
    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("source_id", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_point_transactions_idempotent",
        "point_transactions",
        ["user_id", "source", "source_id"],
        unique=True,
        postgresql_where=sa.text("source_id IS NOT NULL"),
    )
    op.create_index(
        "ix_point_transactions_user_time",
        "point_transactions",
        ["user_id", "created_at"],
    )

    # --- points_accounts (cached snapshot) ---
    op.create_table(
        "points_accounts",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("balance", sa.Integer, nullable=False, server_default="0"),
        sa.Column("earned_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("spent_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lifetime_total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("experience_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("streak_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_on", sa.Date, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- user_tiers ---
    op.create_table(
        "user_tiers",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("current_tier", sa.String(20), nullable=False, server_default="bronze"),
        sa.Column("tier_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("monthly_tier_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("monthly_period", sa.String(7), nullable=False),
        sa.Column("tier_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("history", postgresql.JSONB, nullable=True, server_default="[]"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- user_achievement_progress ---
    op.create_table(
        "user_achievement_progress",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("achievement_id", sa.String(64), primary_key=True),
        sa.Column("progress_percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("current_values", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_discovered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("discovered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_achievement_progress_unlocked",
        "user_achievement_progress",
        ["user_id", "unlocked_at"],
    )

    # --- chain_progress ---
    op.create_table(
        "chain_progress",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("chain_id", sa.String(64), primary_key=True),
        sa.Column("current_level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("progress_data", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop the reputation tables."""
    op.drop_table("chain_progress")
    op.drop_index("ix_achievement_progress_unlocked", table_name="user_achievement_progress")
    op.drop_table("user_achievement_progress")
    op.drop_table("user_tiers")
    op.drop_table("points_accounts")
    op.drop_index("ix_point_transactions_user_time", table_name="point_transactions")
    op.drop_index("ix_point_transactions_idempotent", table_name="point_transactions")
    op.drop_table("point_transactions")
