"""
tests/test_achievements.py — Catalog & Eligibility Pipeline Tests
==================================================================

Covers the static catalog, generic requirement evaluation, hidden
achievement rules, unlock planning and discovery hints.  No database.
"""

from __future__ import annotations

import subprocess
import sys

import pytest

from barkrep.constants import AchievementType
from barkrep.engine import achievements
from barkrep.engine.achievements import (
    AchievementContext,
    calculate_progress,
    collect_hints,
    current_values,
    hidden_unlocked,
    meets_requirements,
    plan_unlocks,
    register_hidden_rule,
    requirement_met,
)
from barkrep.engine.catalog import (
    DEFAULT_CATALOG,
    AchievementCatalog,
    AchievementChain,
    AchievementDefinition,
    AchievementRewards,
)

CE = "community_expert_chain"
FESTIVALS = ["diwali", "holi", "dussehra", "independence_day", "republic_day"]


def _defn(id: str, requirements: dict, **kwargs) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        name=id.title(),
        description="",
        category="test",
        requirements=requirements,
        rewards=AchievementRewards(points=10),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class TestCatalog:
    def test_default_catalog_contents(self):
        assert len(DEFAULT_CATALOG.standard) == 17
        assert len(DEFAULT_CATALOG.chains) == 2
        assert len(DEFAULT_CATALOG.hidden) == 6
        assert len(DEFAULT_CATALOG) == 17 + 5 + 4 + 6

    def test_visible_excludes_hidden(self):
        visible = {a.id for a in DEFAULT_CATALOG.visible()}
        assert "night_owl" not in visible
        assert "first_paw_print" in visible
        assert "ce_first_steps" in visible

    def test_chain_levels_ordered(self):
        chain = DEFAULT_CATALOG.get_chain(CE)
        assert chain.total_levels == 5
        assert [a.level for a in chain.achievements] == [1, 2, 3, 4, 5]
        assert chain.level(2).id == "ce_getting_involved"
        assert chain.level(6) is None

    def test_chain_members_are_progressive(self):
        defn = DEFAULT_CATALOG.get("dcm_health_tracker")
        assert defn.type is AchievementType.PROGRESSIVE
        assert defn.chain_id == "dog_care_master_chain"
        assert defn.dependencies == ("dcm_new_parent",)

    def test_requirements_are_read_only(self):
        defn = DEFAULT_CATALOG.get("festive_spirit")
        assert isinstance(defn.requirements["festival_participation"], tuple)
        with pytest.raises(TypeError):
            defn.requirements["timeframe"] = "daily"  # type: ignore[index]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            AchievementCatalog(standard=[_defn("a", {}), _defn("a", {})])

    def test_chain_gap_rejected(self):
        chain = AchievementChain(
            id="gappy",
            name="Gappy",
            description="",
            category="test",
            achievements=(
                _defn("g1", {}, chain_id="gappy", level=1),
                _defn("g3", {}, chain_id="gappy", level=3),
            ),
        )
        with pytest.raises(ValueError):
            AchievementCatalog(chains=[chain])

    def test_lookup_helpers(self):
        assert "mentor_soul" in DEFAULT_CATALOG
        assert DEFAULT_CATALOG.get("nope") is None
        assert all(a.category == "health" for a in DEFAULT_CATALOG.by_category("health"))


# ---------------------------------------------------------------------------
# Requirement evaluation
# ---------------------------------------------------------------------------
class TestRequirements:
    def test_numeric_threshold(self):
        ctx = AchievementContext(stats={"posts": 3})
        assert requirement_met("posts", 3, ctx)
        assert not requirement_met("posts", 4, ctx)

    def test_missing_stat_fails(self):
        assert not requirement_met("posts", 1, AchievementContext())

    def test_boolean_threshold(self):
        assert requirement_met("first_post", True, AchievementContext(stats={"first_post": True}))
        assert not requirement_met("first_post", True, AchievementContext(stats={"first_post": False}))

    def test_bool_stat_not_a_count(self):
        ctx = AchievementContext(stats={"posts": True})
        assert not requirement_met("posts", 1, ctx)

    def test_sequence_superset(self):
        ctx = AchievementContext(stats={"festival_participation": FESTIVALS + ["onam"]})
        assert requirement_met("festival_participation", tuple(FESTIVALS), ctx)
        ctx = AchievementContext(stats={"festival_participation": ["holi"]})
        assert not requirement_met("festival_participation", tuple(FESTIVALS), ctx)

    def test_uninterpretable_threshold_fails(self):
        ctx = AchievementContext(stats={"mood": "happy"})
        assert not requirement_met("mood", "happy", ctx)

    def test_minimum_level_reads_account_level(self):
        assert requirement_met("minimum_level", 3, AchievementContext(level=3))
        assert not requirement_met("minimum_level", 3, AchievementContext(level=2, stats={"minimum_level": 9}))

    def test_dependencies_gate(self):
        defn = DEFAULT_CATALOG.get("ce_getting_involved")
        ctx = AchievementContext(stats={"active_days": 7, "posts": 5})
        assert not meets_requirements(defn, ctx, set())
        assert meets_requirements(defn, ctx, {"ce_first_steps"})


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
class TestProgress:
    def test_single_key(self):
        defn = DEFAULT_CATALOG.get("helpful_member")
        assert calculate_progress(defn, AchievementContext(stats={"helpful_votes": 10})) == 40.0

    def test_mean_over_keys(self):
        defn = DEFAULT_CATALOG.get("ce_getting_involved")
        ctx = AchievementContext(stats={"active_days": 7, "posts": 1})
        assert calculate_progress(defn, ctx) == 60.0

    def test_capped_at_hundred(self):
        defn = DEFAULT_CATALOG.get("first_paw_print")
        assert calculate_progress(defn, AchievementContext(stats={"posts": 40})) == 100.0

    def test_hidden_progress(self):
        owl = DEFAULT_CATALOG.get("night_owl")
        assert calculate_progress(owl, AchievementContext(stats={"night_activity_days": 5})) == 50.0
        festive = DEFAULT_CATALOG.get("festive_spirit")
        ctx = AchievementContext(stats={"festival_participation": ["diwali", "holi"]})
        assert calculate_progress(festive, ctx) == 40.0

    def test_current_values_json_friendly(self):
        defn = DEFAULT_CATALOG.get("festive_spirit")
        ctx = AchievementContext(stats={"festival_participation": {"holi", "diwali"}})
        assert current_values(defn, ctx) == {"festival_participation": ["diwali", "holi"]}


# ---------------------------------------------------------------------------
# Hidden rules
# ---------------------------------------------------------------------------
class TestHiddenRules:
    def test_night_owl(self):
        owl = DEFAULT_CATALOG.get("night_owl")
        assert hidden_unlocked(owl, AchievementContext(stats={"night_activity_days": 10}))
        assert not hidden_unlocked(owl, AchievementContext(stats={"night_activity_days": 9}))

    def test_dog_whisperer_needs_both(self):
        whisperer = DEFAULT_CATALOG.get("dog_whisperer")
        near = {"accurate_behavior_predictions": 10, "prediction_accuracy": 79}
        assert not hidden_unlocked(whisperer, AchievementContext(stats=near))
        done = {"accurate_behavior_predictions": 10, "prediction_accuracy": 80}
        assert hidden_unlocked(whisperer, AchievementContext(stats=done))

    def test_malformed_stats_are_false(self):
        festive = DEFAULT_CATALOG.get("festive_spirit")
        assert not hidden_unlocked(festive, AchievementContext(stats={"festival_participation": 5}))
        owl = DEFAULT_CATALOG.get("night_owl")
        assert not hidden_unlocked(owl, AchievementContext(stats={"night_activity_days": "ten"}))

    def test_unknown_rule_skipped(self, caplog):
        mystery = _defn("mystery", {}, type=AchievementType.HIDDEN, is_hidden=True)
        assert not hidden_unlocked(mystery, AchievementContext())
        assert "No hidden rule" in caplog.text

    def test_register_hidden_rule(self, monkeypatch):
        monkeypatch.setattr(achievements, "HIDDEN_RULES", dict(achievements.HIDDEN_RULES))
        register_hidden_rule(
            "mystery",
            lambda reqs, ctx: ctx.stats.get("secret") == "woof",
            lambda reqs, ctx: 1.0 if ctx.stats.get("secret") == "woof" else 0.0,
        )
        mystery = _defn("mystery", {}, type=AchievementType.HIDDEN, is_hidden=True)
        assert hidden_unlocked(mystery, AchievementContext(stats={"secret": "woof"}))


# ---------------------------------------------------------------------------
# Unlock planning
# ---------------------------------------------------------------------------
class TestPlanUnlocks:
    def test_first_post(self):
        ctx = AchievementContext(stats={"posts": 1, "first_post": True})
        plan = plan_unlocks(DEFAULT_CATALOG, ctx, set(), {})
        assert [a.id for a in plan.standard] == ["first_paw_print"]
        assert [c.achievement.id for c in plan.chain_advances] == ["ce_first_steps"]
        assert plan.chain_advances[0].previous_level == 0
        assert plan.chain_advances[0].new_level == 1
        assert plan.hidden == []
        assert plan.unlock_ids() == ["first_paw_print", "ce_first_steps"]

    def test_nothing_earned(self):
        plan = plan_unlocks(DEFAULT_CATALOG, AchievementContext(), set(), {})
        assert plan.is_empty

    def test_already_unlocked_skipped(self):
        ctx = AchievementContext(stats={"posts": 1})
        plan = plan_unlocks(DEFAULT_CATALOG, ctx, {"first_paw_print"}, {})
        assert plan.standard == []

    def test_dependencies_resolve_within_one_pass(self):
        catalog = AchievementCatalog(standard=[
            _defn("second", {"y": 1, "dependencies": ["first"]}),
            _defn("first", {"x": 1}),
        ])
        plan = plan_unlocks(catalog, AchievementContext(stats={"x": 1, "y": 1}), set(), {})
        assert [a.id for a in plan.standard] == ["first", "second"]

    def test_one_chain_level_per_pass(self):
        stats = {"first_post": True, "active_days": 7, "posts": 5}
        plan = plan_unlocks(DEFAULT_CATALOG, AchievementContext(stats=stats), set(), {})
        advances = [c for c in plan.chain_advances if c.chain.id == CE]
        assert [c.achievement.id for c in advances] == ["ce_first_steps"]

        plan = plan_unlocks(
            DEFAULT_CATALOG, AchievementContext(stats=stats), {"ce_first_steps"}, {CE: 1},
        )
        advances = [c for c in plan.chain_advances if c.chain.id == CE]
        assert [c.achievement.id for c in advances] == ["ce_getting_involved"]

    def test_skipping_levels_not_allowed(self):
        # Level 2 done; stats good enough for levels 3 and 4
        stats = {
            "helpful_answers": 25, "avg_rating": 4.5,
            "expert_answers": 100, "upvotes": 500, "best_answers": 15,
        }
        unlocked = {"ce_first_steps", "ce_getting_involved"}
        plan = plan_unlocks(DEFAULT_CATALOG, AchievementContext(stats=stats), unlocked, {CE: 2})
        advances = [c for c in plan.chain_advances if c.chain.id == CE]
        assert [(c.achievement.id, c.new_level) for c in advances] == [("ce_community_helper", 3)]

    def test_lagging_chain_row_catches_up(self):
        plan = plan_unlocks(DEFAULT_CATALOG, AchievementContext(), {"ce_first_steps"}, {})
        assert len(plan.chain_advances) == 1
        assert plan.chain_advances[0].already_unlocked
        assert plan.unlock_ids() == []

    def test_completed_chain_not_advanced(self):
        plan = plan_unlocks(
            DEFAULT_CATALOG, AchievementContext(), set(), {"dog_care_master_chain": 4},
        )
        assert all(c.chain.id != "dog_care_master_chain" for c in plan.chain_advances)

    def test_hidden_unlock(self):
        ctx = AchievementContext(stats={"festival_participation": FESTIVALS})
        plan = plan_unlocks(DEFAULT_CATALOG, ctx, set(), {})
        assert [a.id for a in plan.hidden] == ["festive_spirit"]


# ---------------------------------------------------------------------------
# Discovery hints
# ---------------------------------------------------------------------------
class TestHints:
    def test_hint_at_threshold(self):
        hints = collect_hints(DEFAULT_CATALOG, {"night_owl": 50.0}, set(), set())
        assert hints == [DEFAULT_CATALOG.get("night_owl").discovery_hint]

    def test_below_threshold(self):
        assert collect_hints(DEFAULT_CATALOG, {"night_owl": 49.9}, set(), set()) == []

    def test_unlocked_or_discovered_hidden_no_hint(self):
        progress = {"night_owl": 80.0}
        assert collect_hints(DEFAULT_CATALOG, progress, {"night_owl"}, set()) == []
        assert collect_hints(DEFAULT_CATALOG, progress, set(), {"night_owl"}) == []

    def test_custom_threshold(self):
        hints = collect_hints(DEFAULT_CATALOG, {"early_bird": 30.0}, set(), set(), threshold=0.25)
        assert len(hints) == 1


# ---------------------------------------------------------------------------
# Engine layer stays free of the ORM
# ---------------------------------------------------------------------------
class TestEngineImports:
    def test_engine_modules_do_not_load_database_layer(self):
        script = (
            "import sys\n"
            "import barkrep.engine.achievements, barkrep.engine.catalog\n"
            "import barkrep.engine.quality, barkrep.engine.tiers\n"
            "loaded = [m for m in sys.modules if m.startswith(('sqlalchemy', 'barkrep.database'))]\n"
            "assert not loaded, loaded\n"
        )
        result = subprocess.run(
            [sys.executable, "-c", script], capture_output=True, text=True, check=False,
        )
        assert result.returncode == 0, result.stderr
