"""
barkrep.engine.catalog — Static achievement catalog
====================================================

Every achievement the engine knows about: standard one-off achievements,
the progressive chains, and the hidden achievements.  The catalog is built
once at import time and never mutated, so every evaluation can read it
without locking.

Requirements are ``key → threshold`` mappings read by
:mod:`barkrep.engine.achievements`.  Two keys are structural:
``dependencies`` (achievement ids that must already be unlocked) and
``timeframe`` (descriptive only).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from barkrep.constants import AchievementType, Rarity


# ---------------------------------------------------------------------------
# Definition types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementRewards:
    points: int = 0
    badges: tuple[str, ...] = ()
    perks: tuple[str, ...] = ()
    unlocks: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AchievementDefinition:
    """One achievement, shared read-only by every user."""

    id: str
    name: str
    description: str
    category: str
    type: AchievementType = AchievementType.STANDARD
    requirements: Mapping[str, object] = field(default_factory=dict)
    rewards: AchievementRewards = AchievementRewards()
    rarity: Rarity = Rarity.COMMON
    icon: str = ""
    chain_id: str | None = None
    level: int | None = None
    is_hidden: bool = False
    discovery_hint: str | None = None

    def __post_init__(self) -> None:
        reqs = dict(self.requirements)
        # Lists become tuples so nothing reachable from the catalog mutates
        for key, value in reqs.items():
            if isinstance(value, list):
                reqs[key] = tuple(value)
        object.__setattr__(self, "requirements", MappingProxyType(reqs))

    @property
    def dependencies(self) -> tuple[str, ...]:
        deps = self.requirements.get("dependencies") or ()
        if isinstance(deps, str):
            return (deps,)
        return tuple(deps)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class AchievementChain:
    """An ordered ladder of achievements unlocked one level at a time."""

    id: str
    name: str
    description: str
    category: str
    achievements: tuple[AchievementDefinition, ...]

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.achievements, key=lambda a: a.level or 0))
        object.__setattr__(self, "achievements", ordered)

    @property
    def total_levels(self) -> int:
        return len(self.achievements)

    def level(self, number: int) -> AchievementDefinition | None:
        """Achievement for chain level *number* (1-based), or None."""
        for achievement in self.achievements:
            if achievement.level == number:
                return achievement
        return None


# ---------------------------------------------------------------------------
# Standard achievements
# ---------------------------------------------------------------------------
def _standard(
    id: str,
    name: str,
    description: str,
    category: str,
    points: int,
    requirements: dict,
    rarity: Rarity,
    icon: str = "",
) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        name=name,
        description=description,
        category=category,
        type=AchievementType.STANDARD,
        requirements=requirements,
        rewards=AchievementRewards(points=points, badges=(id,)),
        rarity=rarity,
        icon=icon,
    )


STANDARD_ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    # Community engagement
    _standard("first_paw_print", "First Paw Print",
              "Posted your first question or answer", "community",
              50, {"posts": 1}, Rarity.COMMON, "🐾"),
    _standard("helpful_member", "Helpful Member",
              "Received 25 helpful votes from community", "community",
              200, {"helpful_votes": 25}, Rarity.RARE, "🤝"),
    _standard("expert_recognition", "Expert Recognition",
              "Had 10 answers marked as best answers", "expertise",
              500, {"best_answers": 10}, Rarity.EPIC, "⭐"),
    _standard("community_champion", "Community Champion",
              "Made 100 contributions to the community", "community",
              1000, {"total_contributions": 100}, Rarity.LEGENDARY, "🏆"),
    # Dog care
    _standard("dog_parent_dedication", "Dog Parent Dedication",
              "Added complete profiles for 3 dogs", "dog_care",
              300, {"dog_profiles": 3}, Rarity.COMMON, "🐕"),
    _standard("health_advocate", "Health Advocate",
              "Logged health data for 30 days straight", "health",
              600, {"health_logs": 30}, Rarity.RARE, "🏥"),
    _standard("vaccination_guardian", "Vaccination Guardian",
              "Kept vaccination records updated for all dogs", "health",
              400, {"vaccination_complete": True}, Rarity.RARE, "💉"),
    # Social
    _standard("social_butterfly", "Social Butterfly",
              "Connected with 20 fellow dog parents", "social",
              400, {"friend_connections": 20}, Rarity.RARE, "🦋"),
    _standard("play_date_organizer", "Play Date Organizer",
              "Organized 5 successful play dates", "social",
              250, {"play_dates_organized": 5}, Rarity.COMMON, "🎾"),
    # Streaks
    _standard("consistent_contributor", "Consistent Contributor",
              "Maintained a 30-day activity streak", "engagement",
              800, {"daily_activity": 30}, Rarity.EPIC, "🔥"),
    _standard("loyalty_legend", "Loyalty Legend",
              "Logged in for 100 consecutive days", "engagement",
              1500, {"daily_login": 100}, Rarity.LEGENDARY, "👑"),
    # Regional & cultural
    _standard("desi_dog_expert", "Desi Dog Expert",
              "Shared expertise about Indian dog breeds", "expertise",
              750, {"indian_breed_posts": 10}, Rarity.EPIC, "🇮🇳"),
    _standard("festival_celebrant", "Festival Celebrant",
              "Participated during 3 major Indian festivals", "cultural",
              500, {"festival_count": 3}, Rarity.RARE, "🎉"),
    _standard("city_ambassador", "City Ambassador",
              "Became top contributor in your city", "regional",
              1200, {"city_top_contributor": True}, Rarity.LEGENDARY, "🏙️"),
    # Milestones
    _standard("woofadaar_veteran", "Community Veteran",
              "Been part of community for 1 year", "milestone",
              2000, {"days_member": 365}, Rarity.LEGENDARY, "🎖️"),
    _standard("content_creator", "Content Creator",
              "Created valuable guides and stories", "contribution",
              600, {"content_created": 15}, Rarity.RARE, "📝"),
    _standard("mentor_guide", "Mentor Guide",
              "Helped 10 new members get started", "mentorship",
              800, {"mentorship_sessions": 10}, Rarity.EPIC, "🧭"),
)


# ---------------------------------------------------------------------------
# Progressive chains
# ---------------------------------------------------------------------------
def _chain_level(
    chain_id: str,
    level: int,
    id: str,
    name: str,
    description: str,
    category: str,
    requirements: dict,
    points: int,
    badges: tuple[str, ...],
    perks: tuple[str, ...],
    rarity: Rarity,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        name=name,
        description=description,
        category=category,
        type=AchievementType.PROGRESSIVE,
        requirements=requirements,
        rewards=AchievementRewards(points=points, badges=badges, perks=perks),
        rarity=rarity,
        chain_id=chain_id,
        level=level,
    )


_CE = "community_expert_chain"
_DCM = "dog_care_master_chain"

PROGRESSIVE_CHAINS: tuple[AchievementChain, ...] = (
    AchievementChain(
        id=_CE,
        name="Community Expert Journey",
        description="Progress from newcomer to community expert",
        category="community",
        achievements=(
            _chain_level(_CE, 1, "ce_first_steps", "First Steps",
                         "Post your first question or answer", "community",
                         {"first_post": True, "minimum_level": 1},
                         25, ("newcomer",), ("community_welcome_guide",), Rarity.COMMON),
            _chain_level(_CE, 2, "ce_getting_involved", "Active Member",
                         "Actively participate for 7 days", "community",
                         {"active_days": 7, "posts": 5, "dependencies": ["ce_first_steps"]},
                         75, ("active_member",), ("priority_support",), Rarity.COMMON),
            _chain_level(_CE, 3, "ce_community_helper", "Community Helper",
                         "Help others with 25 helpful answers", "community",
                         {"helpful_answers": 25, "avg_rating": 4.0,
                          "dependencies": ["ce_getting_involved"]},
                         150, ("helper",), ("expert_consultation_discount",), Rarity.RARE),
            _chain_level(_CE, 4, "ce_trusted_advisor", "Trusted Advisor",
                         "Become a go-to expert in your area", "community",
                         {"expert_answers": 100, "upvotes": 500, "best_answers": 15,
                          "dependencies": ["ce_community_helper"]},
                         300, ("trusted_advisor",),
                         ("verified_expert_status", "featured_profile"), Rarity.EPIC),
            _chain_level(_CE, 5, "ce_community_legend", "Community Legend",
                         "Achieve legendary status in the community", "community",
                         {"total_contributions": 1000, "community_votes": 2000,
                          "mentored_users": 10, "dependencies": ["ce_trusted_advisor"]},
                         1000, ("legend",),
                         ("lifetime_premium", "community_ambassador", "exclusive_events"),
                         Rarity.LEGENDARY),
        ),
    ),
    AchievementChain(
        id=_DCM,
        name="Dog Care Mastery",
        description="Master the art of caring for your furry friend",
        category="dog_care",
        achievements=(
            _chain_level(_DCM, 1, "dcm_new_parent", "New Dog Parent",
                         "Add your first dog profile", "dog_care",
                         {"dog_profiles_added": 1},
                         50, ("new_parent",), ("care_guide_access",), Rarity.COMMON),
            _chain_level(_DCM, 2, "dcm_health_tracker", "Health Tracker",
                         "Log health data for 30 consecutive days", "dog_care",
                         {"health_logs_streak": 30, "dependencies": ["dcm_new_parent"]},
                         200, ("health_tracker",),
                         ("advanced_analytics", "vet_consultation_credit"), Rarity.RARE),
            _chain_level(_DCM, 3, "dcm_wellness_advocate", "Wellness Advocate",
                         "Maintain perfect vaccination and health records", "dog_care",
                         {"vaccination_compliance": 100, "health_milestones": 10,
                          "vet_visits_logged": 5, "dependencies": ["dcm_health_tracker"]},
                         400, ("wellness_advocate",),
                         ("health_insurance_discount", "priority_vet_booking"), Rarity.EPIC),
            _chain_level(_DCM, 4, "dcm_care_expert", "Dog Care Expert",
                         "Share your expertise and help other parents", "dog_care",
                         {"care_guides_created": 5, "health_questions_answered": 50,
                          "care_tips_shared": 25, "dependencies": ["dcm_wellness_advocate"]},
                         750, ("care_expert",),
                         ("expert_status", "featured_content", "speaking_opportunities"),
                         Rarity.LEGENDARY),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Hidden achievements (predicates live in barkrep.engine.achievements)
# ---------------------------------------------------------------------------
def _hidden(
    id: str,
    name: str,
    description: str,
    category: str,
    hint: str,
    requirements: dict,
    points: int,
    perks: tuple[str, ...],
    rarity: Rarity,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        name=name,
        description=description,
        category=category,
        type=AchievementType.HIDDEN,
        requirements=requirements,
        rewards=AchievementRewards(points=points, badges=(id,), perks=perks),
        rarity=rarity,
        is_hidden=True,
        discovery_hint=hint,
    )


HIDDEN_ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    _hidden("night_owl", "Night Owl",
            "Active between 11 PM - 5 AM for 10 days", "behavior",
            "Some of the best conversations happen when most are sleeping...",
            {"night_activity_days": 10},
            200, ("night_mode_theme", "quiet_hours_badge"), Rarity.RARE),
    _hidden("festive_spirit", "Festive Spirit",
            "Participate during all major Indian festivals in a year", "cultural",
            "Celebrations are better when shared with the community...",
            {"festival_participation": ["diwali", "holi", "dussehra",
                                        "independence_day", "republic_day"],
             "timeframe": "yearly"},
            500, ("festival_exclusive_themes", "cultural_ambassador"), Rarity.EPIC),
    _hidden("mentor_soul", "Mentor Soul",
            "Help 5 new users get their first 100 points", "mentorship",
            "The best teachers create more teachers...",
            {"mentored_users_to_milestone": 5},
            400, ("mentor_status", "mentorship_tools", "exclusive_mentor_events"), Rarity.EPIC),
    _hidden("early_bird", "Early Bird",
            "First to comment on 20 posts within 5 minutes of posting", "engagement",
            "The early bird catches the worm... and the conversation!",
            {"early_comments": 20},
            150, ("notification_priority", "early_access_features"), Rarity.RARE),
    _hidden("weekend_warrior", "Weekend Warrior",
            "Most active community member for 4 consecutive weekends", "engagement",
            "Who says weekends are for rest?",
            {"consecutive_weekend_streaks": 4},
            300, ("weekend_exclusive_content", "priority_weekend_support"), Rarity.EPIC),
    _hidden("dog_whisperer", "Dog Whisperer",
            "Successfully predict dog behavior patterns based on health data", "expertise",
            "Understanding your dog goes beyond words...",
            {"accurate_behavior_predictions": 10, "prediction_accuracy": 80},
            600, ("behavior_analysis_tools", "expert_consultation_access"), Rarity.LEGENDARY),
)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class AchievementCatalog:
    """Immutable index over a set of standard, chain and hidden definitions.

    Raises ``ValueError`` at construction on duplicate achievement or
    chain ids, or on a chain whose levels are not numbered ``1..n``.
    """

    __slots__ = ("_standard", "_chains", "_hidden", "_by_id", "_chains_by_id")

    def __init__(
        self,
        standard: Iterable[AchievementDefinition] = (),
        chains: Iterable[AchievementChain] = (),
        hidden: Iterable[AchievementDefinition] = (),
    ) -> None:
        self._standard = tuple(standard)
        self._chains = tuple(chains)
        self._hidden = tuple(hidden)

        by_id: dict[str, AchievementDefinition] = {}
        chains_by_id: dict[str, AchievementChain] = {}
        for chain in self._chains:
            if chain.id in chains_by_id:
                raise ValueError(f"Duplicate chain id: {chain.id}")
            levels = [a.level for a in chain.achievements]
            if levels != list(range(1, len(levels) + 1)):
                raise ValueError(f"Chain {chain.id} levels must be 1..n, got {levels}")
            chains_by_id[chain.id] = chain

        members = [a for chain in self._chains for a in chain.achievements]
        for achievement in (*self._standard, *members, *self._hidden):
            if achievement.id in by_id:
                raise ValueError(f"Duplicate achievement id: {achievement.id}")
            by_id[achievement.id] = achievement

        self._by_id = MappingProxyType(by_id)
        self._chains_by_id = MappingProxyType(chains_by_id)

    # -- Lookups -------------------------------------------------------------

    def get(self, achievement_id: str) -> AchievementDefinition | None:
        return self._by_id.get(achievement_id)

    def get_chain(self, chain_id: str) -> AchievementChain | None:
        return self._chains_by_id.get(chain_id)

    @property
    def standard(self) -> tuple[AchievementDefinition, ...]:
        return self._standard

    @property
    def chains(self) -> tuple[AchievementChain, ...]:
        return self._chains

    @property
    def hidden(self) -> tuple[AchievementDefinition, ...]:
        return self._hidden

    def all(self) -> tuple[AchievementDefinition, ...]:
        return tuple(self._by_id.values())

    def visible(self) -> tuple[AchievementDefinition, ...]:
        """Every achievement a user may see before unlocking it."""
        return tuple(a for a in self._by_id.values() if not a.is_hidden)

    def by_category(self, category: str) -> tuple[AchievementDefinition, ...]:
        return tuple(a for a in self._by_id.values() if a.category == category)

    def __contains__(self, achievement_id: object) -> bool:
        return achievement_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


DEFAULT_CATALOG = AchievementCatalog(
    standard=STANDARD_ACHIEVEMENTS,
    chains=PROGRESSIVE_CHAINS,
    hidden=HIDDEN_ACHIEVEMENTS,
)
