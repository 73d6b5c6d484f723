"""
barkrep.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- point_transactions        — Append-only points ledger (authoritative)
- points_accounts           — Cached per-user fold of the ledger
- user_tiers                — Tier ladder position + monthly counters
- user_achievement_progress — Per (user, achievement) progress & unlock
- chain_progress            — Per (user, chain) completed level

Users themselves live in the surrounding application; ``user_id`` is the
application's opaque identifier.
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all barkrep ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TransactionKind(enum.StrEnum):
    """Direction of a ledger row."""
    EARN = "earn"
    SPEND = "spend"


# ---------------------------------------------------------------------------
# PointTransaction: append-only ledger
# ---------------------------------------------------------------------------
class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        # One award per source object (partial: rows without a source_id repeat freely)
        Index(
            "ix_point_transactions_idempotent",
            "user_id",
            "source",
            "source_id",
            unique=True,
            postgresql_where=source_id.isnot(None),
            sqlite_where=source_id.isnot(None),
        ),
        Index("ix_point_transactions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointTransaction id={self.id} user={self.user_id!r} "
            f"{self.kind} {self.amount} source={self.source!r}>"
        )


# ---------------------------------------------------------------------------
# PointsAccount: cached snapshot, one row per user
# ---------------------------------------------------------------------------
class PointsAccount(Base):
    __tablename__ = "points_accounts"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, default=0)
    earned_total: Mapped[int] = mapped_column(Integer, default=0)
    spent_total: Mapped[int] = mapped_column(Integer, default=0)
    lifetime_total: Mapped[int] = mapped_column(Integer, default=0)
    experience_points: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    streak_count: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<PointsAccount user={self.user_id!r} balance={self.balance} "
            f"lvl={self.level}>"
        )


# ---------------------------------------------------------------------------
# UserTier: tier ladder position
# ---------------------------------------------------------------------------
class UserTier(Base):
    __tablename__ = "user_tiers"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_tier: Mapped[str] = mapped_column(String(20), nullable=False, default="bronze")
    tier_points: Mapped[int] = mapped_column(Integer, default=0)
    monthly_tier_points: Mapped[int] = mapped_column(Integer, default=0)
    # Calendar month the monthly counter belongs to ("YYYY-MM")
    monthly_period: Mapped[str] = mapped_column(String(7), nullable=False)
    tier_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    history: Mapped[list | None] = mapped_column(JSONB, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<UserTier user={self.user_id!r} tier={self.current_tier!r} "
            f"points={self.tier_points}>"
        )


# ---------------------------------------------------------------------------
# UserAchievementProgress: lazily created on first evaluation
# ---------------------------------------------------------------------------
class UserAchievementProgress(Base):
    __tablename__ = "user_achievement_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    achievement_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    progress_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    current_values: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    unlocked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_discovered: Mapped[bool] = mapped_column(Boolean, default=False)
    discovered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("ix_achievement_progress_unlocked", "user_id", "unlocked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserAchievementProgress user={self.user_id!r} "
            f"achievement={self.achievement_id!r} unlocked={self.unlocked_at is not None}>"
        )


# ---------------------------------------------------------------------------
# ChainProgress: highest completed level per chain
# ---------------------------------------------------------------------------
class ChainProgress(Base):
    __tablename__ = "chain_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    chain_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_level: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    progress_data: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<ChainProgress user={self.user_id!r} chain={self.chain_id!r} "
            f"level={self.current_level}>"
        )
