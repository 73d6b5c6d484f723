"""
barkrep.services.tier_service — Tier Engine
============================================

Keeps each user's ``user_tiers`` row in step with the ledger.

* :func:`apply_points` is called by the ledger after every committed award.
* :func:`evaluate` rolls the monthly counter and requalifies without adding
  points (a user can drop a tier when a new month starts).
* :func:`get_tier_status` adds progression, benefits and perks.

The monthly counter belongs to a calendar month (``"YYYY-MM"``).  The first
call in a new month resets it before anything else happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from barkrep.database.engine import get_session
from barkrep.database.models import PointTransaction, TransactionKind, UserTier
from barkrep.engine.locks import UserLockRegistry, get_default_registry
from barkrep.engine.tiers import (
    BASE_TIER,
    TierPerk,
    TierProgression,
    calculate_progression,
    calculate_tier,
    cumulative_benefits,
    redeemable_perks,
    tier_rank,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TierChange:
    user_id: str
    previous_tier: str
    new_tier: str
    tier_points: int
    monthly_tier_points: int

    @property
    def changed(self) -> bool:
        return self.previous_tier != self.new_tier

    @property
    def upgraded(self) -> bool:
        return tier_rank(self.new_tier) > tier_rank(self.previous_tier)


@dataclass(frozen=True, slots=True)
class TierStatus:
    user_id: str
    current_tier: str
    tier_points: int
    monthly_tier_points: int
    monthly_period: str
    tier_start: datetime
    history: tuple[dict, ...]
    progression: TierProgression
    benefits: tuple[str, ...]
    redeemable_perks: tuple[TierPerk, ...]


# ---------------------------------------------------------------------------
# In-session helpers
# ---------------------------------------------------------------------------
def month_key(now: datetime) -> str:
    return now.strftime("%Y-%m")


def _history_entry(tier: str, now: datetime, points: int) -> dict:
    return {
        "tier": tier,
        "achieved_at": now.isoformat(),
        "points_at_achievement": points,
    }


def get_or_create_tier(
    session: Session,
    user_id: str,
    *,
    now: datetime,
    for_update: bool = False,
) -> UserTier:
    """Fetch the user's tier row, inserting a bronze one on first use."""
    stmt = select(UserTier).where(UserTier.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    tier = session.scalar(stmt)
    if tier is not None:
        return tier

    tier = UserTier(
        user_id=user_id,
        current_tier=BASE_TIER.key,
        tier_points=0,
        monthly_tier_points=0,
        monthly_period=month_key(now),
        tier_start=now,
        history=[_history_entry(BASE_TIER.key, now, 0)],
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(tier)
            session.flush()
    except IntegrityError:
        tier = session.scalar(stmt)
        if tier is None:
            raise
    return tier


def _roll_month(tier: UserTier, now: datetime) -> bool:
    period = month_key(now)
    if tier.monthly_period == period:
        return False
    logger.info(
        "Monthly tier counter reset for user %s: %s → %s (had %d)",
        tier.user_id, tier.monthly_period, period, tier.monthly_tier_points,
    )
    tier.monthly_period = period
    tier.monthly_tier_points = 0
    return True


def _requalify(tier: UserTier, now: datetime) -> str:
    """Recompute ``current_tier``; returns the tier held before."""
    previous = tier.current_tier
    qualified = calculate_tier(tier.tier_points, tier.monthly_tier_points)
    if qualified.key == previous:
        return previous

    tier.current_tier = qualified.key
    tier.tier_start = now

    history = list(tier.history or [])
    best = max((tier_rank(h.get("tier", "")) for h in history), default=-1)
    if qualified.rank > best:
        history.append(_history_entry(qualified.key, now, tier.tier_points))
        tier.history = history   # reassign so the JSON change is flushed

    logger.info(
        "Tier change for user %s: %s → %s (points=%d, monthly=%d)",
        tier.user_id, previous, qualified.key,
        tier.tier_points, tier.monthly_tier_points,
    )
    return previous


def _change(tier: UserTier, previous: str) -> TierChange:
    return TierChange(
        user_id=tier.user_id,
        previous_tier=previous,
        new_tier=tier.current_tier,
        tier_points=tier.tier_points,
        monthly_tier_points=tier.monthly_tier_points,
    )


def trailing_daily_rate(
    session: Session,
    user_id: str,
    *,
    now: datetime,
    window_days: int = 30,
) -> float:
    """Average points earned per day over the trailing *window_days*."""
    since = now - timedelta(days=window_days)
    total = session.scalar(
        select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(
            PointTransaction.user_id == user_id,
            PointTransaction.kind == TransactionKind.EARN.value,
            PointTransaction.created_at >= since,
            PointTransaction.created_at <= now,
        )
    )
    return (total or 0) / window_days


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def apply_points(
    engine: Engine,
    user_id: str,
    delta: int,
    *,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
) -> TierChange:
    """Add *delta* to the lifetime and monthly tier counters and requalify.

    Raises ``ValueError`` for a negative delta; tier points never shrink.
    """
    if delta < 0:
        raise ValueError(f"Tier delta must not be negative, got {delta}")
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    with registry.hold(user_id):
        with get_session(engine) as session:
            tier = get_or_create_tier(session, user_id, now=now, for_update=True)
            _roll_month(tier, now)
            tier.tier_points += delta
            tier.monthly_tier_points += delta
            previous = _requalify(tier, now)
            return _change(tier, previous)


def try_apply_points(
    engine: Engine,
    user_id: str,
    delta: int,
    *,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
) -> TierChange | None:
    """:func:`apply_points` for post-commit callers; store errors are logged."""
    try:
        return apply_points(engine, user_id, delta, now=now, locks=locks)
    except SQLAlchemyError:
        logger.exception("Tier update failed for user %s (delta=%d)", user_id, delta)
        return None


def evaluate(
    engine: Engine,
    user_id: str,
    *,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
) -> TierChange:
    """Create or roll the user's tier state and requalify it."""
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    with registry.hold(user_id):
        with get_session(engine) as session:
            tier = get_or_create_tier(session, user_id, now=now, for_update=True)
            _roll_month(tier, now)
            previous = _requalify(tier, now)
            return _change(tier, previous)


def get_tier_status(
    engine: Engine,
    user_id: str,
    *,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
    window_days: int = 30,
) -> TierStatus:
    """Tier state plus progression towards the next tier."""
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    with registry.hold(user_id):
        with get_session(engine) as session:
            tier = get_or_create_tier(session, user_id, now=now, for_update=True)
            _roll_month(tier, now)
            _requalify(tier, now)

            rate = trailing_daily_rate(session, user_id, now=now, window_days=window_days)
            progression = calculate_progression(
                tier.current_tier,
                tier.tier_points,
                tier.monthly_tier_points,
                daily_rate=rate,
            )
            return TierStatus(
                user_id=user_id,
                current_tier=tier.current_tier,
                tier_points=tier.tier_points,
                monthly_tier_points=tier.monthly_tier_points,
                monthly_period=tier.monthly_period,
                tier_start=tier.tier_start,
                history=tuple(dict(h) for h in (tier.history or [])),
                progression=progression,
                benefits=tuple(cumulative_benefits(tier.current_tier)),
                redeemable_perks=tuple(redeemable_perks(tier.current_tier)),
            )
