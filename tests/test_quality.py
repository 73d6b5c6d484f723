"""
tests/test_quality.py — Unit Tests for Answer Quality Scoring
==============================================================

Pure calculation tests for the five quality factors, the overall score,
recommendations and the highlight rule.
"""

from __future__ import annotations

import math

import pytest

from barkrep.engine.quality import (
    FALLBACK_SCORE,
    GREAT_ANSWER_RECOMMENDATION,
    MAX_RECOMMENDATIONS,
    AnswerAnalysis,
    AuthorCredibility,
    EngagementSignals,
    QualityFactors,
    QualityScore,
    analyze_answer_content,
    calculate_community_engagement,
    calculate_completeness,
    calculate_expert_credibility,
    calculate_timeliness,
    generate_recommendations,
    score_answer,
    should_highlight,
)

QUESTION = "Why is my puppy limping after walks?"

SHORT_ANSWER = "Dogs sometimes chew furniture when they are bored during long quiet afternoons"

EXPERT_ANSWER = (
    "1. Research shows that limping after walks is often a soft tissue strain. "
    "2. In my experience, rest for 48 hours helps. "
    "3. I recommend you try shorter walks and avoid stairs. "
    "If your puppy is still limping after a week, see a vet."
)


def _analysis(**overrides) -> AnswerAnalysis:
    values = dict(
        word_count=60,
        has_structured_info=True,
        has_evidence=True,
        has_personal_experience=True,
        addresses_question=True,
        has_actionable_advice=True,
        language_quality=1.0,
    )
    values.update(overrides)
    return AnswerAnalysis(**values)


# ---------------------------------------------------------------------------
# Content analysis
# ---------------------------------------------------------------------------
class TestAnalyzeAnswerContent:
    def test_detects_signals(self):
        analysis = analyze_answer_content(EXPERT_ANSWER, QUESTION)
        assert analysis.has_structured_info
        assert analysis.has_evidence
        assert analysis.has_personal_experience
        assert analysis.has_actionable_advice
        assert analysis.addresses_question
        assert analysis.word_count == 44

    def test_unrelated_answer_does_not_address_question(self):
        analysis = analyze_answer_content(SHORT_ANSWER, QUESTION)
        assert not analysis.addresses_question
        assert not analysis.has_personal_experience
        assert not analysis.has_structured_info

    def test_bullets_count_as_structure(self):
        analysis = analyze_answer_content("- Keep the water bowl full\n- Walk early")
        assert analysis.has_structured_info

    def test_slang_lowers_language_quality(self):
        analysis = analyze_answer_content("thx u r great")
        assert analysis.language_quality == pytest.approx(0.5)

    def test_empty_answer_rejected(self):
        with pytest.raises(ValueError):
            analyze_answer_content("   ")

    def test_non_string_rejected(self):
        with pytest.raises(TypeError):
            analyze_answer_content(None)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------
class TestFactors:
    def test_regular_user_credibility(self):
        assert calculate_expert_credibility(None) == 0.5
        assert calculate_expert_credibility(AuthorCredibility(rating_average=5.0)) == 0.5

    def test_verified_expert_credibility(self):
        author = AuthorCredibility(
            is_verified_expert=True,
            verification_status="verified",
            specializations=("orthopedics",),
            rating_average=5.0,
            experience_years=12,
        )
        assert calculate_expert_credibility(author, "orthopedics") == pytest.approx(1.0)

    def test_pending_general_expert(self):
        author = AuthorCredibility(
            is_verified_expert=True,
            verification_status="pending",
            specializations=("general",),
        )
        assert calculate_expert_credibility(author, "nutrition") == pytest.approx(0.89)

    def test_engagement_vote_ratio(self):
        score = calculate_community_engagement(EngagementSignals(upvotes=3, downvotes=1))
        assert score == pytest.approx(0.95)

    def test_engagement_defaults(self):
        assert calculate_community_engagement(EngagementSignals()) == 0.5

    def test_engagement_capped(self):
        signals = EngagementSignals(
            upvotes=50, is_best_answer=True, response_time_minutes=0, answer_rank=1,
        )
        assert calculate_community_engagement(signals) == 1.0

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [
            (None, 0.5),
            (0, 1.0),
            (60, 1.0),
            (61, 0.8),
            (360, 0.8),
            (1000, 0.6),
            (4000, 0.4),
            (5000, 0.2),
        ],
    )
    def test_timeliness(self, minutes, expected):
        assert calculate_timeliness(minutes) == expected

    def test_completeness(self):
        assert calculate_completeness(_analysis(word_count=120)) == pytest.approx(1.0)
        assert calculate_completeness(
            _analysis(word_count=10, addresses_question=False, has_actionable_advice=False)
        ) == pytest.approx(0.4)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
class TestRecommendations:
    def test_great_answer_when_nothing_lacking(self):
        factors = QualityFactors(0.9, 0.9, 0.9, 0.9, 0.9)
        assert generate_recommendations(factors, _analysis()) == (GREAT_ANSWER_RECOMMENDATION,)

    def test_content_message_follows_analysis(self):
        factors = QualityFactors(0.55, 0.9, 0.9, 0.9, 0.9)
        recs = generate_recommendations(factors, _analysis(has_structured_info=False))
        assert recs == ("Use bullet points or numbered lists for clarity",)

    def test_short_answer_asks_for_detail(self):
        factors = QualityFactors(0.55, 0.9, 0.9, 0.9, 0.9)
        recs = generate_recommendations(factors, _analysis(word_count=20))
        assert recs == ("Provide more detailed explanation",)

    def test_capped_and_ordered_by_weight(self):
        factors = QualityFactors(0.1, 0.1, 0.1, 0.1, 0.1)
        recs = generate_recommendations(factors, _analysis(word_count=20))
        assert len(recs) == MAX_RECOMMENDATIONS
        assert recs[0] == "Provide more detailed explanation"
        assert "expert verification" in recs[1]


# ---------------------------------------------------------------------------
# score_answer
# ---------------------------------------------------------------------------
class TestScoreAnswer:
    def test_short_unverified_answer_is_fair(self):
        score = score_answer(SHORT_ANSWER, QUESTION)
        assert score.overall_score == pytest.approx(0.47)
        assert score.tier == "fair"
        assert score.recommendations[0] == "Provide more detailed explanation"
        assert len(score.recommendations) == MAX_RECOMMENDATIONS

    def test_expert_answer_is_outstanding(self):
        author = AuthorCredibility(
            is_verified_expert=True,
            verification_status="verified",
            specializations=("orthopedics",),
            rating_average=5.0,
            experience_years=10,
        )
        engagement = EngagementSignals(
            upvotes=10, is_best_answer=True, response_time_minutes=30, answer_rank=1,
        )
        score = score_answer(
            EXPERT_ANSWER, QUESTION,
            engagement=engagement, author=author, category="orthopedics",
        )
        assert score.overall_score >= 0.9
        assert score.tier == "outstanding"
        assert score.recommendations == (GREAT_ANSWER_RECOMMENDATION,)

    def test_overall_within_bounds(self):
        score = score_answer(EXPERT_ANSWER, QUESTION)
        assert 0.0 <= score.overall_score <= 1.0
        assert set(score.factors.as_dict()) == {
            "content_quality",
            "expert_credibility",
            "community_engagement",
            "timeliness",
            "completeness",
        }

    def test_deterministic(self):
        assert score_answer(EXPERT_ANSWER, QUESTION) == score_answer(EXPERT_ANSWER, QUESTION)

    def test_empty_answer_falls_back(self):
        assert score_answer("") == FALLBACK_SCORE

    def test_non_string_falls_back(self):
        assert score_answer(42) == FALLBACK_SCORE  # type: ignore[arg-type]

    @pytest.mark.parametrize("rating", [math.nan, math.inf, -1.0])
    def test_bad_rating_falls_back(self, rating):
        author = AuthorCredibility(
            is_verified_expert=True, verification_status="verified", rating_average=rating,
        )
        assert score_answer("ok thanks", QUESTION, author=author, category="health") == FALLBACK_SCORE

    @pytest.mark.parametrize(
        "engagement",
        [
            EngagementSignals(upvotes=-2, downvotes=1),
            EngagementSignals(downvotes=-1),
            EngagementSignals(response_time_minutes=-30),
            EngagementSignals(response_time_minutes=math.nan),
            EngagementSignals(answer_rank=-1),
        ],
    )
    def test_bad_engagement_falls_back(self, engagement):
        assert score_answer(EXPERT_ANSWER, QUESTION, engagement=engagement) == FALLBACK_SCORE

    def test_bad_experience_years_falls_back(self):
        author = AuthorCredibility(is_verified_expert=True, experience_years=math.inf)
        assert score_answer(EXPERT_ANSWER, QUESTION, author=author) == FALLBACK_SCORE

    def test_unverified_author_rating_still_checked(self):
        author = AuthorCredibility(rating_average=math.nan)
        assert score_answer(EXPERT_ANSWER, QUESTION, author=author) == FALLBACK_SCORE


# ---------------------------------------------------------------------------
# should_highlight
# ---------------------------------------------------------------------------
class TestShouldHighlight:
    @staticmethod
    def _score(value: float) -> QualityScore:
        return QualityScore(value, QualityFactors(), (), "good")

    def test_high_score_highlighted(self):
        assert should_highlight(self._score(0.71))

    def test_expert_lower_bar(self):
        assert should_highlight(self._score(0.65), is_verified_expert=True)
        assert not should_highlight(self._score(0.65))

    def test_expert_below_bar(self):
        assert not should_highlight(self._score(0.55), is_verified_expert=True)
