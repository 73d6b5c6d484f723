"""
barkrep.constants — Shared Constants & Helpers
================================================

Single source of truth for the leveling formula and the label sets shared
by the engine and services.  Import from here instead of duplicating.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Achievement labels (Rarity members are listed from most to least common)
# ---------------------------------------------------------------------------
class AchievementType(enum.StrEnum):
    """How an achievement is presented and evaluated."""
    STANDARD = "standard"
    PROGRESSIVE = "progressive"
    HIDDEN = "hidden"
    COLLABORATIVE = "collaborative"


class Rarity(enum.StrEnum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


# ---------------------------------------------------------------------------
# Quality tiers: (upper bound exclusive, label), checked in order
# ---------------------------------------------------------------------------
QUALITY_TIERS: tuple[tuple[float, str], ...] = (
    (0.4, "poor"),
    (0.65, "fair"),
    (0.8, "good"),
    (0.9, "excellent"),
)
TOP_QUALITY_TIER = "outstanding"

DEFAULT_LEVEL_STEP = 100


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
def xp_for_level(level: int, step: int = DEFAULT_LEVEL_STEP) -> int:
    """Experience points needed to advance out of *level*.

    Level *n* requires ``n * step`` points on top of everything spent
    reaching it, so with the default step level 2 starts at 100 XP,
    level 3 at 300 XP, level 4 at 600 XP.
    """
    return level * step


def compute_level(experience_points: int, step: int = DEFAULT_LEVEL_STEP) -> int:
    """Level reached with *experience_points* (never below 1)."""
    level = 1
    remaining = max(experience_points, 0)
    while remaining >= xp_for_level(level, step):
        remaining -= xp_for_level(level, step)
        level += 1
    return level


def xp_to_next_level(experience_points: int, step: int = DEFAULT_LEVEL_STEP) -> int:
    """Points still missing before the next level-up."""
    level = compute_level(experience_points, step)
    spent = sum(xp_for_level(n, step) for n in range(1, level))
    return spent + xp_for_level(level, step) - max(experience_points, 0)


def quality_tier(score: float) -> str:
    """Map an overall quality score onto its tier label."""
    for bound, label in QUALITY_TIERS:
        if score < bound:
            return label
    return TOP_QUALITY_TIER
