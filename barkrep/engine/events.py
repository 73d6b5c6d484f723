"""
barkrep.engine.events — Activity actions and base points
=========================================================

Every activity the surrounding application reports (question posted,
vote received, streak day completed, referral closed, …) maps onto an
:class:`ActivityAction`.  The base points for each action and the context
multipliers live here so the award size is decided in one place.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "ACTION_DESCRIPTIONS",
    "BASE_POINTS",
    "MULTIPLIERS",
    "ActivityAction",
    "PointContext",
    "PointsCalculation",
    "calculate_points",
]


class ActivityAction(enum.StrEnum):
    """Activities that earn points."""
    # Community
    QUESTION_POST = "question_post"
    ANSWER_POST = "answer_post"
    BEST_ANSWER = "best_answer"
    COMMENT_POST = "comment_post"
    HELPFUL_VOTE = "helpful_vote"
    EXPERT_VERIFICATION = "expert_verification"
    # Profile & content
    PROFILE_COMPLETE = "profile_complete"
    DOG_PROFILE_ADD = "dog_profile_add"
    PHOTO_UPLOAD = "photo_upload"
    STORY_SHARE = "story_share"
    REVIEW_WRITE = "review_write"
    # Health & care
    HEALTH_LOG_ENTRY = "health_log_entry"
    VET_VISIT_LOG = "vet_visit_log"
    VACCINATION_UPDATE = "vaccination_update"
    HEALTH_MILESTONE = "health_milestone"
    # Participation
    EVENT_ATTENDANCE = "event_attendance"
    WORKSHOP_COMPLETION = "workshop_completion"
    MENTORSHIP_SESSION = "mentorship_session"
    # Social
    FRIEND_CONNECT = "friend_connect"
    PLAY_DATE_ORGANIZE = "play_date_organize"
    COMMUNITY_HELP = "community_help"
    REFERRAL_SUCCESS = "referral_success"
    # Streaks
    DAILY_LOGIN = "daily_login"
    WEEKLY_STREAK = "weekly_streak"
    MONTHLY_ACTIVE = "monthly_active"
    # Special contributions
    EXPERT_ANSWER = "expert_answer"
    MODERATOR_ACTION = "moderator_action"
    CONTENT_CREATION = "content_creation"
    COMMUNITY_GUIDE = "community_guide"
    BUG_REPORT = "bug_report"


# ---------------------------------------------------------------------------
# Base points per action
# ---------------------------------------------------------------------------
BASE_POINTS: dict[ActivityAction, int] = {
    ActivityAction.QUESTION_POST: 10,
    ActivityAction.ANSWER_POST: 15,
    ActivityAction.BEST_ANSWER: 50,
    ActivityAction.COMMENT_POST: 5,
    ActivityAction.HELPFUL_VOTE: 3,
    ActivityAction.EXPERT_VERIFICATION: 100,
    ActivityAction.PROFILE_COMPLETE: 25,
    ActivityAction.DOG_PROFILE_ADD: 20,
    ActivityAction.PHOTO_UPLOAD: 8,
    ActivityAction.STORY_SHARE: 12,
    ActivityAction.REVIEW_WRITE: 15,
    ActivityAction.HEALTH_LOG_ENTRY: 12,
    ActivityAction.VET_VISIT_LOG: 25,
    ActivityAction.VACCINATION_UPDATE: 20,
    ActivityAction.HEALTH_MILESTONE: 30,
    ActivityAction.EVENT_ATTENDANCE: 40,
    ActivityAction.WORKSHOP_COMPLETION: 60,
    ActivityAction.MENTORSHIP_SESSION: 35,
    ActivityAction.FRIEND_CONNECT: 15,
    ActivityAction.PLAY_DATE_ORGANIZE: 25,
    ActivityAction.COMMUNITY_HELP: 20,
    ActivityAction.REFERRAL_SUCCESS: 100,
    ActivityAction.DAILY_LOGIN: 5,
    ActivityAction.WEEKLY_STREAK: 25,
    ActivityAction.MONTHLY_ACTIVE: 100,
    ActivityAction.EXPERT_ANSWER: 75,
    ActivityAction.MODERATOR_ACTION: 30,
    ActivityAction.CONTENT_CREATION: 45,
    ActivityAction.COMMUNITY_GUIDE: 80,
    ActivityAction.BUG_REPORT: 40,
}

ACTION_DESCRIPTIONS: dict[ActivityAction, str] = {
    ActivityAction.QUESTION_POST: "Posted a question in community",
    ActivityAction.ANSWER_POST: "Provided an answer",
    ActivityAction.BEST_ANSWER: "Answer marked as best by community",
    ActivityAction.COMMENT_POST: "Added a helpful comment",
    ActivityAction.HELPFUL_VOTE: "Received a helpful vote",
    ActivityAction.EXPERT_VERIFICATION: "Verified as community expert",
    ActivityAction.PROFILE_COMPLETE: "Completed profile setup",
    ActivityAction.DOG_PROFILE_ADD: "Added dog profile",
    ActivityAction.PHOTO_UPLOAD: "Uploaded photo",
    ActivityAction.STORY_SHARE: "Shared a story",
    ActivityAction.REVIEW_WRITE: "Wrote a review",
    ActivityAction.HEALTH_LOG_ENTRY: "Logged health data",
    ActivityAction.VET_VISIT_LOG: "Logged vet visit",
    ActivityAction.VACCINATION_UPDATE: "Updated vaccination record",
    ActivityAction.HEALTH_MILESTONE: "Achieved health milestone",
    ActivityAction.EVENT_ATTENDANCE: "Attended community event",
    ActivityAction.WORKSHOP_COMPLETION: "Completed workshop",
    ActivityAction.MENTORSHIP_SESSION: "Participated in mentorship",
    ActivityAction.FRIEND_CONNECT: "Connected with another member",
    ActivityAction.PLAY_DATE_ORGANIZE: "Organized a play date",
    ActivityAction.COMMUNITY_HELP: "Helped community member",
    ActivityAction.REFERRAL_SUCCESS: "Successfully referred new member",
    ActivityAction.DAILY_LOGIN: "Daily login bonus",
    ActivityAction.WEEKLY_STREAK: "Weekly streak bonus",
    ActivityAction.MONTHLY_ACTIVE: "Monthly activity bonus",
    ActivityAction.EXPERT_ANSWER: "Provided expert-level answer",
    ActivityAction.MODERATOR_ACTION: "Performed moderation action",
    ActivityAction.CONTENT_CREATION: "Created valuable content",
    ActivityAction.COMMUNITY_GUIDE: "Created community guide",
    ActivityAction.BUG_REPORT: "Reported a bug",
}

MULTIPLIERS: dict[str, float] = {
    "new_user": 2.0,
    "premium": 1.5,
    "expert": 1.3,
    "community_leader": 1.4,
    "festival_period": 2.0,
    "weekend": 1.2,
    "birthday_month": 1.5,
}


@dataclass(frozen=True, slots=True)
class PointContext:
    """Circumstances of an activity that scale its reward."""

    is_new_user: bool = False
    is_premium: bool = False
    is_expert: bool = False
    is_community_leader: bool = False
    is_festival_period: bool = False
    is_weekend: bool = False
    is_birthday_month: bool = False


@dataclass(frozen=True, slots=True)
class PointsCalculation:
    action: ActivityAction
    base_points: int
    multiplier: float
    points: int

    @property
    def description(self) -> str:
        text = ACTION_DESCRIPTIONS.get(self.action, f"Points for {self.action}")
        if self.multiplier > 1:
            text += f" ({self.multiplier}x multiplier applied)"
        return text


def calculate_points(
    action: ActivityAction | str,
    context: PointContext | None = None,
) -> PointsCalculation:
    """Size the award for *action* under *context*.

    Multipliers stack multiplicatively.  Raises ``ValueError`` for an
    action with no base points.
    """
    action = ActivityAction(action)
    ctx = context or PointContext()

    multiplier = 1.0
    if ctx.is_new_user:
        multiplier *= MULTIPLIERS["new_user"]
    if ctx.is_premium:
        multiplier *= MULTIPLIERS["premium"]
    if ctx.is_expert:
        multiplier *= MULTIPLIERS["expert"]
    if ctx.is_community_leader:
        multiplier *= MULTIPLIERS["community_leader"]
    if ctx.is_festival_period:
        multiplier *= MULTIPLIERS["festival_period"]
    if ctx.is_weekend:
        multiplier *= MULTIPLIERS["weekend"]
    if ctx.is_birthday_month:
        multiplier *= MULTIPLIERS["birthday_month"]

    base = BASE_POINTS[action]
    return PointsCalculation(
        action=action,
        base_points=base,
        multiplier=round(multiplier, 2),
        points=round(base * multiplier),
    )
