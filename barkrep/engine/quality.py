"""
barkrep.engine.quality — Answer quality scoring
================================================

Multi-factor assessment of a community answer.  Five factors (content,
author credibility, community engagement, timeliness, completeness) are
scored independently in ``[0, 1]`` and combined with fixed weights into an
overall score and a tier label.

This module is pure calculation — no database I/O.  :func:`score_answer`
never raises: any failure yields :data:`FALLBACK_SCORE` so scoring can
never block answer submission.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass

from barkrep.constants import quality_tier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Factor weights (order is also the recommendation priority)
# ---------------------------------------------------------------------------
FACTOR_WEIGHTS: dict[str, float] = {
    "content_quality": 0.35,
    "expert_credibility": 0.25,
    "community_engagement": 0.20,
    "timeliness": 0.10,
    "completeness": 0.10,
}

RECOMMENDATION_THRESHOLDS: dict[str, float] = {
    "content_quality": 0.6,
    "expert_credibility": 0.7,
    "community_engagement": 0.55,
    "timeliness": 0.5,
    "completeness": 0.6,
}

MAX_RECOMMENDATIONS = 3
HIGHLIGHT_THRESHOLD = 0.7
EXPERT_HIGHLIGHT_THRESHOLD = 0.6

FALLBACK_RECOMMENDATION = "Unable to analyze answer quality"
GREAT_ANSWER_RECOMMENDATION = "Great answer! Consider sharing more of your expertise"

# ---------------------------------------------------------------------------
# Text patterns
# ---------------------------------------------------------------------------
_STRUCTURE_RE = re.compile(r"\d+[.)]\s|•\s|-\s|\*\s")
_SLANG_RE = re.compile(r"\b(ur|u|r|plz|thx|lol)\b")
_WORD_RE = re.compile(r"[a-z0-9']+")
_ACTIONABLE_RE = re.compile(
    r"\b(try|do|avoid|consider|recommend|suggest|should|could|might|steps|approach)\b"
)

EVIDENCE_PHRASES: tuple[str, ...] = (
    "research shows",
    "studies indicate",
    "according to",
    "veterinarians recommend",
    "experience shows",
    "proven method",
    "clinical trials",
    "scientific evidence",
)

EXPERIENCE_PHRASES: tuple[str, ...] = (
    "i have",
    "my dog",
    "in my experience",
    "i found that",
    "worked for me",
    "i recommend",
    "i suggest",
    "similar situation",
    "same issue",
)

_QUESTION_STOPWORDS = frozenset(
    {"what", "when", "where", "why", "how", "does", "will", "should"}
)

_VERIFICATION_SCORES: dict[str, float] = {
    "verified": 1.0,
    "pending": 0.6,
    "rejected": 0.2,
}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EngagementSignals:
    """Community reaction counters for one answer."""

    upvotes: int = 0
    downvotes: int = 0
    is_best_answer: bool = False
    # Minutes between the question and this answer (None = unknown)
    response_time_minutes: float | None = None
    # 1 for the first answer on the question, 2 for the second, …
    answer_rank: int | None = None


@dataclass(frozen=True, slots=True)
class AuthorCredibility:
    """What is known about the answer's author."""

    is_verified_expert: bool = False
    verification_status: str = ""
    specializations: Sequence[str] = ()
    rating_average: float = 0.0
    experience_years: float | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AnswerAnalysis:
    word_count: int
    has_structured_info: bool
    has_evidence: bool
    has_personal_experience: bool
    addresses_question: bool
    has_actionable_advice: bool
    language_quality: float


@dataclass(frozen=True, slots=True)
class QualityFactors:
    content_quality: float = 0.5
    expert_credibility: float = 0.5
    community_engagement: float = 0.5
    timeliness: float = 0.5
    completeness: float = 0.5

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_WEIGHTS}


@dataclass(frozen=True, slots=True)
class QualityScore:
    overall_score: float
    factors: QualityFactors
    recommendations: tuple[str, ...]
    tier: str


FALLBACK_SCORE = QualityScore(
    overall_score=0.5,
    factors=QualityFactors(),
    recommendations=(FALLBACK_RECOMMENDATION,),
    tier="fair",
)


# ---------------------------------------------------------------------------
# Content analysis
# ---------------------------------------------------------------------------
def _significant_question_words(question_title: str, question_content: str) -> list[str]:
    text = f"{question_title} {question_content}".lower()
    seen: dict[str, None] = {}
    for word in _WORD_RE.findall(text):
        if len(word) > 3 and word not in _QUESTION_STOPWORDS:
            seen.setdefault(word, None)
    return list(seen)


def analyze_answer_content(
    answer_text: str,
    question_title: str = "",
    question_content: str = "",
) -> AnswerAnalysis:
    """Extract the content signals the factor functions read.

    Raises ``ValueError`` for an empty answer and ``TypeError`` for a
    non-string one.
    """
    if not isinstance(answer_text, str):
        raise TypeError(f"answer text must be a string, got {type(answer_text).__name__}")
    if not answer_text.strip():
        raise ValueError("answer text is empty")

    text = answer_text.lower()
    word_count = len(answer_text.split())

    has_structured_info = bool(_STRUCTURE_RE.search(answer_text))
    has_evidence = any(phrase in text for phrase in EVIDENCE_PHRASES)
    has_personal_experience = any(phrase in text for phrase in EXPERIENCE_PHRASES)
    has_actionable_advice = bool(_ACTIONABLE_RE.search(text))

    keywords = _significant_question_words(question_title or "", question_content or "")
    addressed = sum(1 for word in keywords if word in text)
    addresses_question = addressed / max(len(keywords), 1) > 0.3

    language_quality = min(
        1.0,
        0.5
        + (0.2 if word_count > 30 else 0.0)
        + (0.15 if has_structured_info else 0.0)
        + (0.15 if not _SLANG_RE.search(text) else 0.0),
    )

    return AnswerAnalysis(
        word_count=word_count,
        has_structured_info=has_structured_info,
        has_evidence=has_evidence,
        has_personal_experience=has_personal_experience,
        addresses_question=addresses_question,
        has_actionable_advice=has_actionable_advice,
        language_quality=language_quality,
    )


# ---------------------------------------------------------------------------
# Factor scores
# ---------------------------------------------------------------------------
def calculate_content_quality(analysis: AnswerAnalysis) -> float:
    score = 0.4
    if analysis.addresses_question:
        score += 0.25
    if analysis.has_evidence:
        score += 0.15
    if analysis.has_personal_experience:
        score += 0.10
    if analysis.word_count >= 30:
        score += 0.10
    if analysis.word_count >= 80:
        score += 0.10
    if analysis.has_structured_info:
        score += 0.08
    score += analysis.language_quality * 0.07
    return min(score, 1.0)


def calculate_expert_credibility(
    author: AuthorCredibility | None,
    category: str | None = None,
) -> float:
    """0.5 for regular users; verified experts earn up to 1.0.

    Weights: verification status 40 %, specialization match 30 %,
    rating 20 %, years of experience 10 %.
    """
    score = 0.5
    if author is None or not author.is_verified_expert:
        return score

    status = (author.verification_status or "").lower()
    score += _VERIFICATION_SCORES.get(status, 0.2) * 0.4

    specializations = set(author.specializations or ())
    if category and category in specializations:
        score += 0.3
    elif "general" in specializations:
        score += 0.15

    score += (max(author.rating_average, 0.0) / 5) * 0.2

    if author.experience_years:
        score += min(author.experience_years / 10, 1.0) * 0.1

    return min(score, 1.0)


def calculate_community_engagement(engagement: EngagementSignals) -> float:
    score = 0.5

    total_votes = engagement.upvotes + engagement.downvotes
    if total_votes > 0:
        score += (engagement.upvotes / total_votes) * 0.4

    score += min(max(engagement.upvotes, 0) * 0.05, 0.2)

    if engagement.is_best_answer:
        score += 0.25

    # Decays linearly to nothing over 24 hours
    if engagement.response_time_minutes is not None:
        score += max(0.0, 1 - engagement.response_time_minutes / 1440) * 0.1

    rank = engagement.answer_rank
    if rank is not None and 1 <= rank <= 3:
        score += (4 - rank) / 10 * 0.05

    return min(score, 1.0)


def calculate_timeliness(response_time_minutes: float | None) -> float:
    if response_time_minutes is None:
        return 0.5
    if response_time_minutes <= 60:
        return 1.0
    if response_time_minutes <= 360:
        return 0.8
    if response_time_minutes <= 1440:
        return 0.6
    if response_time_minutes <= 4320:
        return 0.4
    return 0.2


def calculate_completeness(analysis: AnswerAnalysis) -> float:
    score = 0.4
    if analysis.word_count >= 100:
        score += 0.2
    if analysis.addresses_question:
        score += 0.2
    if analysis.has_actionable_advice:
        score += 0.2
    return min(score, 1.0)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
def _content_message(analysis: AnswerAnalysis) -> str:
    if analysis.word_count < 50:
        return "Provide more detailed explanation"
    if not analysis.has_structured_info:
        return "Use bullet points or numbered lists for clarity"
    if not analysis.addresses_question:
        return "Address the specific question asked"
    return "Support your points with evidence or personal experience"


def _completeness_message(analysis: AnswerAnalysis) -> str:
    if not analysis.has_actionable_advice:
        return "Include step-by-step instructions or examples"
    return "Support your advice with sources or evidence"


_RECOMMENDATION_MESSAGES = {
    "content_quality": _content_message,
    "expert_credibility": lambda _a: "Consider getting expert verification to increase credibility",
    "community_engagement": lambda _a: "Provide more actionable and helpful advice",
    "timeliness": lambda _a: "Respond sooner to questions to help members when it matters",
    "completeness": _completeness_message,
}


def generate_recommendations(
    factors: QualityFactors,
    analysis: AnswerAnalysis,
) -> tuple[str, ...]:
    """One message per factor below its threshold, heaviest factor first."""
    values = factors.as_dict()
    messages = [
        _RECOMMENDATION_MESSAGES[name](analysis)
        for name in FACTOR_WEIGHTS
        if values[name] < RECOMMENDATION_THRESHOLDS[name]
    ]
    if not messages:
        return (GREAT_ANSWER_RECOMMENDATION,)
    return tuple(messages[:MAX_RECOMMENDATIONS])


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
def _check_signals(engagement: EngagementSignals, author: AuthorCredibility | None) -> None:
    """Raise ValueError unless every numeric signal is finite and non-negative."""
    signals: dict[str, float | None] = {
        "upvotes": engagement.upvotes,
        "downvotes": engagement.downvotes,
        "response_time_minutes": engagement.response_time_minutes,
        "answer_rank": engagement.answer_rank,
    }
    if author is not None:
        signals["rating_average"] = author.rating_average
        signals["experience_years"] = author.experience_years

    for name, value in signals.items():
        if value is None:
            continue
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"{name} must be finite and non-negative, got {value!r}")


def score_answer(
    answer_text: str,
    question_title: str = "",
    question_content: str = "",
    engagement: EngagementSignals | None = None,
    author: AuthorCredibility | None = None,
    category: str | None = None,
) -> QualityScore:
    """Score one answer.  Never raises; failures return :data:`FALLBACK_SCORE`."""
    try:
        engagement = engagement or EngagementSignals()
        _check_signals(engagement, author)
        analysis = analyze_answer_content(answer_text, question_title, question_content)

        factors = QualityFactors(
            content_quality=calculate_content_quality(analysis),
            expert_credibility=calculate_expert_credibility(author, category),
            community_engagement=calculate_community_engagement(engagement),
            timeliness=calculate_timeliness(engagement.response_time_minutes),
            completeness=calculate_completeness(analysis),
        )

        values = factors.as_dict()
        overall = sum(values[name] * weight for name, weight in FACTOR_WEIGHTS.items())
        overall = round(max(0.0, min(1.0, overall)), 2)

        return QualityScore(
            overall_score=overall,
            factors=factors,
            recommendations=generate_recommendations(factors, analysis),
            tier=quality_tier(overall),
        )
    except Exception:
        logger.exception("Answer quality scoring failed; using fallback score")
        return FALLBACK_SCORE


def should_highlight(score: QualityScore, is_verified_expert: bool = False) -> bool:
    """Whether an answer deserves a highlighted slot on its question."""
    if score.overall_score >= HIGHLIGHT_THRESHOLD:
        return True
    return is_verified_expert and score.overall_score >= EXPERT_HIGHLIGHT_THRESHOLD
