"""
barkrep.services.achievement_service — Achievement Engine
==========================================================

Persists what :func:`barkrep.engine.achievements.plan_unlocks` decides.

One evaluation pass, under the user's lock and in one transaction:

1. Load unlocked achievements and chain levels (rows locked ``FOR UPDATE``).
2. Plan the pass against the supplied statistics snapshot.
3. Refresh ``user_achievement_progress`` for every still-locked achievement.
4. Unlock each planned achievement and append exactly one reward
   transaction for it (source ``"achievement"``, source id = achievement id).
5. Advance each chain by at most one level.

After the commit every reward is applied to the user's tier.  Rewards never
trigger another evaluation pass, so the cascade stops here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barkrep.constants import DEFAULT_LEVEL_STEP
from barkrep.database.engine import get_session
from barkrep.database.models import ChainProgress, UserAchievementProgress
from barkrep.engine.achievements import (
    AchievementContext,
    calculate_progress,
    collect_hints,
    current_values,
    plan_unlocks,
)
from barkrep.engine.catalog import DEFAULT_CATALOG, AchievementCatalog, AchievementDefinition
from barkrep.engine.locks import UserLockRegistry, get_default_registry
from barkrep.services import ledger_service, tier_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

ACHIEVEMENT_SOURCE = "achievement"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChainLevelUp:
    chain_id: str
    chain_name: str
    previous_level: int
    new_level: int
    achievement_id: str
    completed: bool = False


@dataclass(slots=True)
class ActivityEvaluation:
    """What one evaluation pass changed.

    ``newly_unlocked`` lists standard and chain achievements;
    ``discovered_hidden`` lists hidden ones.
    """

    level_ups: list[ChainLevelUp] = field(default_factory=list)
    newly_unlocked: list[str] = field(default_factory=list)
    discovered_hidden: list[str] = field(default_factory=list)
    points_awarded: int = 0


@dataclass(frozen=True, slots=True)
class AchievementView:
    id: str
    name: str
    description: str
    category: str
    type: str
    rarity: str
    icon: str
    points: int
    badges: tuple[str, ...]
    perks: tuple[str, ...]
    chain_id: str | None
    level: int | None
    progress_percentage: float
    unlocked_at: datetime | None

    @classmethod
    def build(
        cls,
        defn: AchievementDefinition,
        row: UserAchievementProgress | None,
    ) -> AchievementView:
        unlocked_at = row.unlocked_at if row is not None else None
        if unlocked_at is not None:
            progress = 100.0
        else:
            progress = row.progress_percentage if row is not None else 0.0
        return cls(
            id=defn.id,
            name=defn.name,
            description=defn.description,
            category=defn.category,
            type=defn.type.value,
            rarity=defn.rarity.value,
            icon=defn.icon,
            points=defn.rewards.points,
            badges=defn.rewards.badges,
            perks=defn.rewards.perks,
            chain_id=defn.chain_id,
            level=defn.level,
            progress_percentage=progress or 0.0,
            unlocked_at=unlocked_at,
        )


@dataclass(frozen=True, slots=True)
class AchievementListing:
    unlocked: list[AchievementView]
    locked_visible: list[AchievementView]
    hints: list[str]


# ---------------------------------------------------------------------------
# In-session helpers
# ---------------------------------------------------------------------------
def _load_progress(
    session: Session, user_id: str, *, for_update: bool = False
) -> dict[str, UserAchievementProgress]:
    stmt = select(UserAchievementProgress).where(UserAchievementProgress.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    return {row.achievement_id: row for row in session.scalars(stmt)}


def _load_chains(
    session: Session, user_id: str, *, for_update: bool = False
) -> dict[str, ChainProgress]:
    stmt = select(ChainProgress).where(ChainProgress.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    return {row.chain_id: row for row in session.scalars(stmt)}


def _progress_row(
    session: Session,
    rows: dict[str, UserAchievementProgress],
    user_id: str,
    achievement_id: str,
) -> UserAchievementProgress:
    row = rows.get(achievement_id)
    if row is None:
        row = UserAchievementProgress(
            user_id=user_id,
            achievement_id=achievement_id,
            progress_percentage=0.0,
            current_values={},
            is_discovered=False,
        )
        session.add(row)
        rows[achievement_id] = row
    return row


def _unlock(
    session: Session,
    rows: dict[str, UserAchievementProgress],
    user_id: str,
    defn: AchievementDefinition,
    *,
    now: datetime,
    level_step: int,
) -> int | None:
    """Mark *defn* unlocked and append its reward.

    Returns the points paid, or None if it was already unlocked.
    """
    row = _progress_row(session, rows, user_id, defn.id)
    if row.unlocked_at is not None:
        return None

    row.unlocked_at = now
    row.progress_percentage = 100.0
    row.is_discovered = True
    row.discovered_at = row.discovered_at or now

    paid = 0
    if defn.rewards.points > 0:
        record = ledger_service.append_earn(
            session,
            user_id,
            defn.rewards.points,
            ACHIEVEMENT_SOURCE,
            f"Achievement unlocked: {defn.name}",
            source_id=defn.id,
            now=now,
            level_step=level_step,
        )
        if record.duplicate:
            logger.warning(
                "Reward for %s already in ledger for user %s; not paid again",
                defn.id, user_id,
            )
        else:
            paid = defn.rewards.points

    logger.info(
        "Achievement unlocked: %s (%s) for user %s (+%d points)",
        defn.name, defn.id, user_id, paid,
    )
    return paid


def _evaluate_in_session(
    session: Session,
    user_id: str,
    stats: Mapping[str, object],
    *,
    catalog: AchievementCatalog,
    now: datetime,
    level_step: int,
) -> tuple[ActivityEvaluation, list[int]]:
    account = ledger_service.get_or_create_account(session, user_id, for_update=True)
    rows = _load_progress(session, user_id, for_update=True)
    chains = _load_chains(session, user_id, for_update=True)

    for chain_id in chains:
        if catalog.get_chain(chain_id) is None:
            logger.warning("Unknown chain %s in progress for user %s; ignored", chain_id, user_id)

    unlocked = {aid for aid, row in rows.items() if row.unlocked_at is not None}
    ctx = AchievementContext(
        level=account.level,
        lifetime_points=account.lifetime_total,
        balance=account.balance,
        streak_days=account.streak_count,
        stats=dict(stats),
    )
    plan = plan_unlocks(
        catalog,
        ctx,
        unlocked,
        {cid: row.current_level for cid, row in chains.items()},
    )

    # Progress for everything still locked (hidden rows stay undiscovered)
    for defn in catalog.all():
        if defn.id in unlocked:
            continue
        row = _progress_row(session, rows, user_id, defn.id)
        row.progress_percentage = calculate_progress(defn, ctx)
        row.current_values = current_values(defn, ctx)

    evaluation = ActivityEvaluation()
    rewards: list[int] = []

    def _pay(defn: AchievementDefinition) -> bool:
        paid = _unlock(session, rows, user_id, defn, now=now, level_step=level_step)
        if paid is None:
            return False
        if paid:
            rewards.append(paid)
            evaluation.points_awarded += paid
        return True

    for defn in plan.standard:
        if _pay(defn):
            evaluation.newly_unlocked.append(defn.id)

    for advance in plan.chain_advances:
        if not advance.already_unlocked and _pay(advance.achievement):
            evaluation.newly_unlocked.append(advance.achievement.id)

        chain_row = chains.get(advance.chain.id)
        if chain_row is None:
            chain_row = ChainProgress(
                user_id=user_id,
                chain_id=advance.chain.id,
                current_level=0,
                progress_data={},
            )
            session.add(chain_row)
            chains[advance.chain.id] = chain_row
        if chain_row.current_level != advance.previous_level:
            logger.warning(
                "Chain %s for user %s moved to level %d during evaluation; skipped",
                advance.chain.id, user_id, chain_row.current_level,
            )
            continue

        completed = advance.new_level >= advance.chain.total_levels
        chain_row.current_level = advance.new_level
        chain_row.progress_data = {
            **(chain_row.progress_data or {}),
            "last_achievement": advance.achievement.id,
            "advanced_at": now.isoformat(),
        }
        if completed:
            chain_row.completed_at = now
        evaluation.level_ups.append(
            ChainLevelUp(
                chain_id=advance.chain.id,
                chain_name=advance.chain.name,
                previous_level=advance.previous_level,
                new_level=advance.new_level,
                achievement_id=advance.achievement.id,
                completed=completed,
            )
        )
        logger.info(
            "Chain %s advanced for user %s: level %d → %d",
            advance.chain.id, user_id, advance.previous_level, advance.new_level,
        )

    for defn in plan.hidden:
        if _pay(defn):
            evaluation.discovered_hidden.append(defn.id)

    return evaluation, rewards


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def evaluate_activity(
    engine: Engine,
    user_id: str,
    stats: Mapping[str, object],
    *,
    catalog: AchievementCatalog = DEFAULT_CATALOG,
    now: datetime | None = None,
    locks: UserLockRegistry | None = None,
    level_step: int = DEFAULT_LEVEL_STEP,
) -> ActivityEvaluation:
    """Run one achievement evaluation pass for *user_id*.

    Store failures and malformed input are logged and yield an empty
    evaluation; they never propagate to the caller.
    """
    registry = locks or get_default_registry()
    now = now or datetime.now(UTC)

    try:
        with registry.hold(user_id):
            with get_session(engine) as session:
                evaluation, rewards = _evaluate_in_session(
                    session, user_id, stats or {},
                    catalog=catalog, now=now, level_step=level_step,
                )
            for points in rewards:
                tier_service.try_apply_points(engine, user_id, points, now=now, locks=registry)
    except SQLAlchemyError:
        logger.exception("Achievement evaluation failed for user %s", user_id)
        return ActivityEvaluation()
    except Exception:
        logger.exception("Achievement evaluation aborted for user %s", user_id)
        return ActivityEvaluation()

    return evaluation


def list_achievements(
    engine: Engine,
    user_id: str,
    *,
    include_locked: bool = True,
    include_hidden: bool = False,
    catalog: AchievementCatalog = DEFAULT_CATALOG,
    hint_threshold: float = 0.5,
) -> AchievementListing:
    """Unlocked achievements, visible locked ones and discovery hints.

    Read-only.  Hidden achievements appear only once unlocked; hints for
    the rest are included only with *include_hidden*.
    """
    with Session(engine) as session:
        rows = _load_progress(session, user_id)

        unlocked_views: list[AchievementView] = []
        for achievement_id, row in rows.items():
            if row.unlocked_at is None:
                continue
            defn = catalog.get(achievement_id)
            if defn is None:
                logger.warning(
                    "Unknown achievement %s unlocked for user %s; not listed",
                    achievement_id, user_id,
                )
                continue
            unlocked_views.append(AchievementView.build(defn, row))
        unlocked_views.sort(key=lambda v: (v.unlocked_at, v.id))

        unlocked_ids = {v.id for v in unlocked_views}
        locked_views: list[AchievementView] = []
        if include_locked:
            locked_views = [
                AchievementView.build(defn, rows.get(defn.id))
                for defn in catalog.visible()
                if defn.id not in unlocked_ids
            ]

        hints: list[str] = []
        if include_hidden:
            hints = collect_hints(
                catalog,
                {aid: row.progress_percentage or 0.0 for aid, row in rows.items()},
                unlocked=unlocked_ids,
                discovered={aid for aid, row in rows.items() if row.is_discovered},
                threshold=hint_threshold,
            )

    return AchievementListing(
        unlocked=unlocked_views,
        locked_visible=locked_views,
        hints=hints,
    )
