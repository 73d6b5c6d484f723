"""
barkrep.engine.tiers — Tier ladder & progression
=================================================

Five tiers, bronze → diamond.  A tier is held while both its lifetime
point floor and its monthly activity requirement are met, so a quiet month
can drop a member back down the ladder even though their lifetime tier
points never shrink.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Ladder definition
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TierPerk:
    id: str
    name: str
    description: str
    type: str  # discount | access | bonus | service | feature
    value: int | None = None
    is_redeemable: bool = False
    points_cost: int | None = None


@dataclass(frozen=True, slots=True)
class TierDefinition:
    key: str
    name: str
    rank: int
    min_points: int
    monthly_points_required: int
    benefits: tuple[str, ...]
    perks: tuple[TierPerk, ...]
    icon: str = ""
    special_features: tuple[str, ...] = ()


TIER_LADDER: tuple[TierDefinition, ...] = (
    TierDefinition(
        key="bronze",
        name="Bronze Paw",
        rank=0,
        min_points=0,
        monthly_points_required=0,
        benefits=(
            "Basic community access",
            "Standard customer support",
            "Weekly newsletter",
            "Basic health reminders",
        ),
        perks=(
            TierPerk("community_access", "Community Access",
                     "Access to community forums and Q&A", "access"),
            TierPerk("standard_support", "Standard Support",
                     "Email support with 48-hour response", "service"),
        ),
        icon="🥉",
        special_features=("Community participation", "Basic dog profiles"),
    ),
    TierDefinition(
        key="silver",
        name="Silver Paw",
        rank=1,
        min_points=1000,
        monthly_points_required=200,
        benefits=(
            "Priority question visibility",
            "Monthly expert Q&A session",
            "Advanced health analytics",
            "Exclusive content access",
            "10% partner service discount",
        ),
        perks=(
            TierPerk("priority_visibility", "Priority Question Visibility",
                     "Your questions appear higher in community feeds", "feature"),
            TierPerk("expert_consultation", "Monthly Expert Consultation",
                     "30-minute consultation with veterinary experts", "service",
                     is_redeemable=True, points_cost=100),
            TierPerk("partner_discount_10", "10% Partner Discount",
                     "10% discount on all partner services", "discount", value=10),
            TierPerk("advanced_analytics", "Advanced Health Analytics",
                     "Detailed health trends and insights", "feature"),
        ),
        icon="🥈",
        special_features=("Expert access", "Analytics dashboard", "Partner discounts"),
    ),
    TierDefinition(
        key="gold",
        name="Gold Paw",
        rank=2,
        min_points=5000,
        monthly_points_required=500,
        benefits=(
            "VIP customer support",
            "Exclusive event access",
            "Advanced partner discounts (20%)",
            "Custom profile themes",
            "Early feature access",
            "Monthly health report",
        ),
        perks=(
            TierPerk("vip_support", "VIP Support",
                     "24-hour priority email and chat support", "service"),
            TierPerk("exclusive_events", "Exclusive Events",
                     "Access to VIP community events and webinars", "access"),
            TierPerk("partner_discount_20", "20% Partner Discount",
                     "20% discount on all partner services", "discount", value=20),
            TierPerk("custom_themes", "Custom Profile Themes",
                     "Personalize your profile with exclusive themes", "feature"),
            TierPerk("early_access", "Early Feature Access",
                     "Beta access to new features before public release", "access"),
            TierPerk("health_report", "Monthly Health Report",
                     "Comprehensive monthly health analysis", "service",
                     is_redeemable=True, points_cost=50),
        ),
        icon="🥇",
        special_features=("VIP status", "Custom themes", "Exclusive events", "Advanced discounts"),
    ),
    TierDefinition(
        key="platinum",
        name="Platinum Paw",
        rank=3,
        min_points=15000,
        monthly_points_required=1000,
        benefits=(
            "Premium features access",
            "Quarterly vet consultation credits",
            "Priority appointment booking",
            "Exclusive webinar access",
            "Advanced AI recommendations",
            "30% partner discounts",
        ),
        perks=(
            TierPerk("premium_features", "All Premium Features",
                     "Access to all premium platform features", "access"),
            TierPerk("vet_credits", "Vet Consultation Credits",
                     "Quarterly credits for professional consultations", "service",
                     is_redeemable=True, points_cost=200),
            TierPerk("priority_booking", "Priority Booking",
                     "Skip the queue for appointment bookings", "service"),
            TierPerk("exclusive_webinars", "Exclusive Webinars",
                     "Access to expert-led educational webinars", "access"),
            TierPerk("ai_recommendations", "Advanced AI Recommendations",
                     "Personalized AI-powered care recommendations", "feature"),
            TierPerk("partner_discount_30", "30% Partner Discount",
                     "30% discount on all partner services", "discount", value=30),
        ),
        icon="💎",
        special_features=("Premium access", "Vet credits", "AI recommendations", "Priority services"),
    ),
    TierDefinition(
        key="diamond",
        name="Diamond Paw",
        rank=4,
        min_points=50000,
        monthly_points_required=2000,
        benefits=(
            "Lifetime premium access",
            "Personal pet care advisor",
            "Annual comprehensive health package",
            "Community ambassador status",
            "Custom feature requests",
            "White-glove concierge service",
        ),
        perks=(
            TierPerk("lifetime_premium", "Lifetime Premium",
                     "Permanent access to all premium features", "access"),
            TierPerk("personal_advisor", "Personal Pet Advisor",
                     "Dedicated advisor for personalized pet care guidance", "service"),
            TierPerk("health_package", "Annual Health Package",
                     "Comprehensive annual health checkup package", "service",
                     is_redeemable=True, points_cost=500),
            TierPerk("ambassador_status", "Community Ambassador",
                     "Special recognition and community leadership role", "access"),
            TierPerk("custom_requests", "Custom Feature Requests",
                     "Direct line to product team for feature requests", "access"),
            TierPerk("concierge_service", "Concierge Service",
                     "White-glove service for all your pet care needs", "service"),
        ),
        icon="💠",
        special_features=("Lifetime benefits", "Personal advisor", "Ambassador status", "Concierge service"),
    ),
)

_TIERS_BY_KEY: dict[str, TierDefinition] = {t.key: t for t in TIER_LADDER}
BASE_TIER = TIER_LADDER[0]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_tier(key: str) -> TierDefinition:
    """Return the tier named *key*.  Raises ``KeyError`` for unknown keys."""
    return _TIERS_BY_KEY[key]


def tier_rank(key: str) -> int:
    """Rank of *key* on the ladder, or -1 for an unknown key."""
    tier = _TIERS_BY_KEY.get(key)
    return tier.rank if tier is not None else -1


def next_tier(key: str) -> TierDefinition | None:
    rank = get_tier(key).rank
    return TIER_LADDER[rank + 1] if rank + 1 < len(TIER_LADDER) else None


def calculate_tier(tier_points: int, monthly_points: int = 0) -> TierDefinition:
    """Highest tier whose lifetime floor and monthly requirement are both met."""
    for tier in reversed(TIER_LADDER):
        if tier_points >= tier.min_points and monthly_points >= tier.monthly_points_required:
            return tier
    return BASE_TIER


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TierProgression:
    current_tier: TierDefinition
    next_tier: TierDefinition | None
    progress_percentage: float
    points_to_next: int
    monthly_progress: float
    # None means unknown (no earn rate yet, or already at the top)
    estimated_days_to_next: int | None


def estimate_days(points_to_next: int, daily_rate: float, has_next: bool) -> int | None:
    if not has_next:
        return None
    if points_to_next <= 0:
        return 0
    if daily_rate <= 0:
        return None
    return math.ceil(points_to_next / daily_rate)


def calculate_progression(
    current_key: str,
    tier_points: int,
    monthly_points: int,
    daily_rate: float = 0.0,
) -> TierProgression:
    """Progress from the held tier *current_key* towards the next one.

    *daily_rate* is the trailing average points earned per day.
    """
    current = get_tier(current_key)
    upcoming = next_tier(current_key)

    if upcoming is None:
        return TierProgression(
            current_tier=current,
            next_tier=None,
            progress_percentage=100.0,
            points_to_next=0,
            monthly_progress=100.0,
            estimated_days_to_next=None,
        )

    span = upcoming.min_points - current.min_points
    progress = (tier_points - current.min_points) / span * 100 if span > 0 else 100.0
    progress = round(max(0.0, min(progress, 100.0)), 2)

    points_to_next = max(upcoming.min_points - tier_points, 0)

    if upcoming.monthly_points_required > 0:
        monthly = min(monthly_points / upcoming.monthly_points_required * 100, 100.0)
    else:
        monthly = 100.0

    return TierProgression(
        current_tier=current,
        next_tier=upcoming,
        progress_percentage=progress,
        points_to_next=points_to_next,
        monthly_progress=round(max(monthly, 0.0), 2),
        estimated_days_to_next=estimate_days(points_to_next, daily_rate, True),
    )


# ---------------------------------------------------------------------------
# Benefits
# ---------------------------------------------------------------------------
def cumulative_benefits(key: str) -> list[str]:
    """Benefits of *key* and every tier below it, de-duplicated, in order."""
    rank = tier_rank(key)
    if rank < 0:
        return []
    seen: dict[str, None] = {}
    for tier in TIER_LADDER[: rank + 1]:
        for benefit in tier.benefits:
            seen.setdefault(benefit, None)
    return list(seen)


def redeemable_perks(key: str) -> list[TierPerk]:
    """Perks of tier *key* that can be bought with points."""
    tier = _TIERS_BY_KEY.get(key)
    if tier is None:
        return []
    return [perk for perk in tier.perks if perk.is_redeemable]
