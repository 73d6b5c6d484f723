"""
tests/test_events.py — Unit Tests for Activity Points
======================================================

Tests the pure points calculation (no I/O, no database).
"""

from __future__ import annotations

import pytest

from barkrep.engine.events import (
    ACTION_DESCRIPTIONS,
    BASE_POINTS,
    ActivityAction,
    PointContext,
    calculate_points,
)


# ---------------------------------------------------------------------------
# BASE_POINTS
# ---------------------------------------------------------------------------
class TestBaseValues:
    def test_every_action_has_base_points(self):
        assert set(BASE_POINTS) == set(ActivityAction)

    def test_every_action_has_description(self):
        assert set(ACTION_DESCRIPTIONS) == set(ActivityAction)

    def test_known_values(self):
        assert BASE_POINTS[ActivityAction.QUESTION_POST] == 10
        assert BASE_POINTS[ActivityAction.BEST_ANSWER] == 50
        assert BASE_POINTS[ActivityAction.REFERRAL_SUCCESS] == 100


# ---------------------------------------------------------------------------
# calculate_points
# ---------------------------------------------------------------------------
class TestCalculatePoints:
    def test_no_context_is_base(self):
        calc = calculate_points(ActivityAction.ANSWER_POST)
        assert calc.points == 15
        assert calc.multiplier == 1.0
        assert calc.description == "Provided an answer"

    def test_accepts_string_action(self):
        calc = calculate_points("question_post")
        assert calc.action is ActivityAction.QUESTION_POST
        assert calc.points == 10

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            calculate_points("walk_the_cat")

    def test_multipliers_stack(self):
        ctx = PointContext(is_new_user=True, is_weekend=True)
        calc = calculate_points(ActivityAction.ANSWER_POST, ctx)
        assert calc.multiplier == 2.4
        assert calc.points == 36

    def test_points_rounded(self):
        calc = calculate_points(ActivityAction.HELPFUL_VOTE, PointContext(is_expert=True))
        # 3 * 1.3 = 3.9
        assert calc.points == 4

    def test_description_mentions_multiplier(self):
        ctx = PointContext(is_new_user=True, is_festival_period=True)
        calc = calculate_points(ActivityAction.QUESTION_POST, ctx)
        assert calc.points == 40
        assert calc.description.endswith("(4.0x multiplier applied)")

    def test_all_flags(self):
        ctx = PointContext(
            is_new_user=True,
            is_premium=True,
            is_expert=True,
            is_community_leader=True,
            is_festival_period=True,
            is_weekend=True,
            is_birthday_month=True,
        )
        calc = calculate_points(ActivityAction.DAILY_LOGIN, ctx)
        assert calc.multiplier == pytest.approx(2.0 * 1.5 * 1.3 * 1.4 * 2.0 * 1.2 * 1.5, abs=0.01)
        assert calc.points > BASE_POINTS[ActivityAction.DAILY_LOGIN]
