"""
barkrep.engine.achievements — Achievement eligibility pipeline
===============================================================

Pure evaluation of the catalog against one user's statistics snapshot.
Given what a user has already unlocked and how far each chain has got,
:func:`plan_unlocks` decides what this pass unlocks.  The service layer
then persists the plan and pays the rewards.

Generic requirements compare a stat against a threshold.  Hidden
achievements use bespoke rules from :data:`HIDDEN_RULES`, a handler
registry keyed by achievement id.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Mapping, Set
from dataclasses import dataclass, field

from barkrep.engine.catalog import (
    AchievementCatalog,
    AchievementChain,
    AchievementDefinition,
)

logger = logging.getLogger(__name__)

# Requirement keys that are structural rather than compared to a stat
RESERVED_KEYS: frozenset[str] = frozenset({"dependencies", "timeframe"})

# Requirement key → AchievementContext attribute holding its value
REQUIREMENT_ALIASES: dict[str, str] = {
    "minimum_level": "level",
    "level": "level",
    "lifetime_points": "lifetime_points",
    "balance": "balance",
    "streak_days": "streak_days",
}

_MISSING = object()


# ---------------------------------------------------------------------------
# Achievement Context: what every requirement is evaluated against
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of one user's state for an evaluation pass.

    Parameters
    ----------
    level : Account level from the points ledger.
    lifetime_points : Lifetime points earned.
    balance : Current spendable balance.
    streak_days : Current daily activity streak.
    stats : Statistics supplied by the surrounding application
        (e.g. ``{"posts": 12, "festival_participation": ["holi"]}``).
    """

    level: int = 1
    lifetime_points: int = 0
    balance: int = 0
    streak_days: int = 0
    stats: Mapping[str, object] = field(default_factory=dict)

    def value(self, key: str) -> object:
        """Value a requirement *key* is compared against, or ``_MISSING``."""
        attr = REQUIREMENT_ALIASES.get(key)
        if attr is not None:
            return getattr(self, attr)
        return self.stats.get(key, _MISSING)


# ---------------------------------------------------------------------------
# Generic requirement evaluation
# ---------------------------------------------------------------------------
def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_sequence(value: object) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def requirement_met(key: str, threshold: object, ctx: AchievementContext) -> bool:
    """Whether one requirement holds.  Anything uninterpretable is False."""
    actual = ctx.value(key)
    if actual is _MISSING:
        return False

    if isinstance(threshold, bool):
        return bool(actual)
    if _is_number(threshold):
        return _is_number(actual) and actual >= threshold  # type: ignore[operator]
    if _is_sequence(threshold):
        if not _is_sequence(actual):
            return False
        try:
            return set(threshold) <= set(actual)  # type: ignore[arg-type]
        except TypeError:
            return False
    return False


def requirement_progress(key: str, threshold: object, ctx: AchievementContext) -> float:
    """Fraction ``[0, 1]`` of one requirement already reached."""
    actual = ctx.value(key)
    if actual is _MISSING:
        return 0.0

    if isinstance(threshold, bool):
        return 1.0 if actual else 0.0
    if _is_number(threshold):
        if not _is_number(actual):
            return 0.0
        if threshold <= 0:  # type: ignore[operator]
            return 1.0 if actual >= threshold else 0.0  # type: ignore[operator]
        return max(0.0, min(actual / threshold, 1.0))  # type: ignore[operator]
    if _is_sequence(threshold):
        if not _is_sequence(actual) or not threshold:
            return 0.0
        try:
            have = set(actual)  # type: ignore[arg-type]
            return sum(1 for item in threshold if item in have) / len(threshold)  # type: ignore[arg-type]
        except TypeError:
            return 0.0
    return 0.0


def _compared_requirements(defn: AchievementDefinition) -> list[tuple[str, object]]:
    return [(k, v) for k, v in defn.requirements.items() if k not in RESERVED_KEYS]


def dependencies_met(defn: AchievementDefinition, unlocked: Collection[str]) -> bool:
    return all(dep in unlocked for dep in defn.dependencies)


def meets_requirements(
    defn: AchievementDefinition,
    ctx: AchievementContext,
    unlocked: Collection[str],
) -> bool:
    """Dependencies unlocked and every compared requirement satisfied."""
    if not dependencies_met(defn, unlocked):
        return False
    return all(requirement_met(k, v, ctx) for k, v in _compared_requirements(defn))


def current_values(defn: AchievementDefinition, ctx: AchievementContext) -> dict[str, object]:
    """The user's present value for each requirement key (JSON-friendly)."""
    values: dict[str, object] = {}
    for key, _threshold in _compared_requirements(defn):
        actual = ctx.value(key)
        if actual is _MISSING:
            continue
        if isinstance(actual, (set, frozenset, tuple)):
            actual = sorted(actual, key=str)
        values[key] = actual
    return values


def calculate_progress(defn: AchievementDefinition, ctx: AchievementContext) -> float:
    """Progress percentage ``[0, 100]`` rounded to two places.

    Standard and chain achievements average their per-requirement progress;
    hidden achievements ask their registered rule.
    """
    if defn.is_hidden:
        rule = HIDDEN_RULES.get(defn.id)
        if rule is None:
            return 0.0
        try:
            fraction = rule.progress(defn.requirements, ctx)
        except Exception:
            logger.exception("Hidden progress rule for %s failed; progress reported as 0", defn.id)
            return 0.0
    else:
        reqs = _compared_requirements(defn)
        if not reqs:
            return 100.0
        fraction = sum(requirement_progress(k, v, ctx) for k, v in reqs) / len(reqs)
    return round(max(0.0, min(fraction, 1.0)) * 100, 2)


# ---------------------------------------------------------------------------
# Hidden achievement rules: registry of id → (predicate, progress)
# ---------------------------------------------------------------------------
HiddenPredicate = Callable[[Mapping[str, object], AchievementContext], bool]
HiddenProgress = Callable[[Mapping[str, object], AchievementContext], float]


@dataclass(frozen=True, slots=True)
class HiddenRule:
    predicate: HiddenPredicate
    progress: HiddenProgress


def _stat_number(ctx: AchievementContext, key: str) -> float:
    value = ctx.stats.get(key, 0)
    return value if _is_number(value) else 0  # type: ignore[return-value]


def _ratio(ctx: AchievementContext, reqs: Mapping[str, object], key: str, default: float) -> float:
    target = reqs.get(key, default)
    if not _is_number(target) or target <= 0:  # type: ignore[operator]
        target = default
    return min(_stat_number(ctx, key) / target, 1.0)  # type: ignore[operator]


def _single_stat_rule(key: str, default: float) -> HiddenRule:
    """Rule for hidden achievements gated on one counter."""

    def predicate(reqs: Mapping[str, object], ctx: AchievementContext) -> bool:
        return _ratio(ctx, reqs, key, default) >= 1.0

    def progress(reqs: Mapping[str, object], ctx: AchievementContext) -> float:
        return _ratio(ctx, reqs, key, default)

    return HiddenRule(predicate, progress)


def _festival_progress(reqs: Mapping[str, object], ctx: AchievementContext) -> float:
    required = reqs.get("festival_participation") or ()
    if not required:
        return 0.0
    attended = ctx.stats.get("festival_participation") or ()
    if not _is_sequence(attended):
        return 0.0
    have = set(attended)  # type: ignore[arg-type]
    return sum(1 for f in required if f in have) / len(required)  # type: ignore[arg-type]


def _festival_predicate(reqs: Mapping[str, object], ctx: AchievementContext) -> bool:
    return _festival_progress(reqs, ctx) >= 1.0


def _whisperer_progress(reqs: Mapping[str, object], ctx: AchievementContext) -> float:
    predictions = _ratio(ctx, reqs, "accurate_behavior_predictions", 10)
    accuracy = _ratio(ctx, reqs, "prediction_accuracy", 80)
    return (predictions + accuracy) / 2


def _whisperer_predicate(reqs: Mapping[str, object], ctx: AchievementContext) -> bool:
    return (
        _ratio(ctx, reqs, "accurate_behavior_predictions", 10) >= 1.0
        and _ratio(ctx, reqs, "prediction_accuracy", 80) >= 1.0
    )


HIDDEN_RULES: dict[str, HiddenRule] = {
    "night_owl": _single_stat_rule("night_activity_days", 10),
    "festive_spirit": HiddenRule(_festival_predicate, _festival_progress),
    "mentor_soul": _single_stat_rule("mentored_users_to_milestone", 5),
    "early_bird": _single_stat_rule("early_comments", 20),
    "weekend_warrior": _single_stat_rule("consecutive_weekend_streaks", 4),
    "dog_whisperer": HiddenRule(_whisperer_predicate, _whisperer_progress),
}


def register_hidden_rule(
    achievement_id: str,
    predicate: HiddenPredicate,
    progress: HiddenProgress,
) -> None:
    """Add or replace the rule for a hidden achievement.

    Pair every call with an :class:`AchievementDefinition` in the catalog;
    a definition without a rule is skipped with a warning.
    """
    HIDDEN_RULES[achievement_id] = HiddenRule(predicate, progress)


def hidden_unlocked(defn: AchievementDefinition, ctx: AchievementContext) -> bool:
    """Evaluate a hidden achievement's rule.  Unknown or failing rules are False."""
    rule = HIDDEN_RULES.get(defn.id)
    if rule is None:
        logger.warning("No hidden rule registered for achievement %s; skipped", defn.id)
        return False
    try:
        return bool(rule.predicate(defn.requirements, ctx))
    except Exception:
        logger.exception("Hidden rule for %s failed; treated as locked", defn.id)
        return False


# ---------------------------------------------------------------------------
# Unlock planning
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChainAdvance:
    chain: AchievementChain
    achievement: AchievementDefinition
    previous_level: int
    new_level: int
    # Level achievement was unlocked earlier but the chain row lagged behind
    already_unlocked: bool = False


@dataclass(slots=True)
class EvaluationPlan:
    standard: list[AchievementDefinition] = field(default_factory=list)
    chain_advances: list[ChainAdvance] = field(default_factory=list)
    hidden: list[AchievementDefinition] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.standard or self.chain_advances or self.hidden)

    def unlock_ids(self) -> list[str]:
        """Ids this plan newly unlocks (chain catch-ups excluded)."""
        ids = [a.id for a in self.standard]
        ids.extend(c.achievement.id for c in self.chain_advances if not c.already_unlocked)
        ids.extend(a.id for a in self.hidden)
        return ids


def plan_unlocks(
    catalog: AchievementCatalog,
    ctx: AchievementContext,
    unlocked: Set[str],
    chain_levels: Mapping[str, int],
) -> EvaluationPlan:
    """Decide what one evaluation pass unlocks.

    * Standard achievements are checked to a fixpoint, so a dependency
      unlocked earlier in the same pass counts.
    * Each chain considers only level ``current + 1``; at most one level
      per chain per pass.
    * Hidden achievements go through :data:`HIDDEN_RULES`.
    """
    plan = EvaluationPlan()
    granted: set[str] = set(unlocked)

    pending = [a for a in catalog.standard if a.id not in granted]
    progressed = True
    while progressed:
        progressed = False
        for achievement in list(pending):
            if meets_requirements(achievement, ctx, granted):
                plan.standard.append(achievement)
                granted.add(achievement.id)
                pending.remove(achievement)
                progressed = True

    for chain in catalog.chains:
        current = chain_levels.get(chain.id, 0)
        if current >= chain.total_levels:
            continue
        nxt = chain.level(current + 1)
        if nxt is None:
            logger.warning("Chain %s has no level %d; skipped", chain.id, current + 1)
            continue
        if nxt.id in granted:
            plan.chain_advances.append(
                ChainAdvance(chain, nxt, current, current + 1, already_unlocked=True)
            )
        elif meets_requirements(nxt, ctx, granted):
            plan.chain_advances.append(ChainAdvance(chain, nxt, current, current + 1))
            granted.add(nxt.id)

    for achievement in catalog.hidden:
        if achievement.id in granted:
            continue
        if dependencies_met(achievement, granted) and hidden_unlocked(achievement, ctx):
            plan.hidden.append(achievement)
            granted.add(achievement.id)

    return plan


# ---------------------------------------------------------------------------
# Discovery hints: read-only projection
# ---------------------------------------------------------------------------
def collect_hints(
    catalog: AchievementCatalog,
    progress: Mapping[str, float],
    unlocked: Set[str],
    discovered: Set[str],
    threshold: float = 0.5,
) -> list[str]:
    """Hints for hidden achievements the user is closing in on.

    *progress* maps achievement id → stored progress percentage.  Only
    achievements neither unlocked nor discovered, at or above
    ``threshold * 100`` percent, contribute their hint.
    """
    hints: list[str] = []
    cutoff = threshold * 100
    for achievement in catalog.hidden:
        if achievement.id in unlocked or achievement.id in discovered:
            continue
        if not achievement.discovery_hint:
            continue
        if progress.get(achievement.id, 0.0) >= cutoff:
            hints.append(achievement.discovery_hint)
    return hints
