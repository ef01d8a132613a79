"""
Tests for the Issue quality evaluator.
"""

import asyncio

import pytest

from team_pulse.errors import AIResponseError, AIServiceError, ValidationError
from team_pulse.scoring.quality import (
    IssueForEvaluation,
    QualityEvaluator,
    QualityScore,
    build_quality_prompt,
)

ISSUE = IssueForEvaluation(42, "Add CSV export", "## Goal\nExport reports", "octocat")


def test_concrete_scores_total_78_grade_b(ai_service, replies):
    """Category scores 20/18/25/15 total 78, grade B."""
    service = ai_service(replies.quality((20, 18, 25, 15)))
    evaluation = asyncio.run(QualityEvaluator(service).evaluate(ISSUE))

    assert evaluation.total_score.value == 78
    assert evaluation.grade.grade == "B"
    assert evaluation.grade.label == "Actionable"
    assert [c.score for c in evaluation.categories] == [20, 18, 25, 15]
    assert evaluation.improvement_suggestions == ["Add edge cases"]


def test_over_weight_scores_are_clamped_per_category(ai_service, replies):
    service = ai_service(replies.quality((99, 99, 99, 99)))
    evaluation = asyncio.run(QualityEvaluator(service).evaluate(ISSUE))
    assert [c.score for c in evaluation.categories] == [25, 25, 30, 20]
    assert evaluation.total_score.value == 100
    assert evaluation.grade.grade == "A"


def test_missing_category_scores_zero(ai_service, replies):
    reply = replies.quality((20, 18, 25, 15))
    reply["categories"] = reply["categories"][:2]
    evaluation = asyncio.run(QualityEvaluator(ai_service(reply)).evaluate(ISSUE))
    assert evaluation.total_score.value == 38
    assert evaluation.grade.grade == "D"
    assert evaluation.categories[2].feedback == "Could not be evaluated"


def test_details_blob(ai_service, replies):
    evaluation = asyncio.run(QualityEvaluator(ai_service(replies.quality())).evaluate(ISSUE))
    details = evaluation.details()
    assert details["overall_feedback"] == "Solid issue."
    assert details["categories"][0] == {
        "category_id": "context-goal",
        "category_name": "Context & Goal",
        "score": 20,
        "max_score": 25,
        "feedback": "context-goal feedback",
    }


def test_prompt_mentions_issue_and_rubric():
    prompt = build_quality_prompt(ISSUE)
    assert "#42" in prompt
    assert "Add CSV export" in prompt
    assert "octocat" in prompt
    assert "acceptance-criteria (Acceptance Criteria, max 30 points)" in prompt


def test_prompt_handles_missing_body_and_assignee():
    prompt = build_quality_prompt(IssueForEvaluation(1, "Title", None))
    assert "(no body)" in prompt
    assert "(not set)" in prompt


def test_service_failure_propagates(ai_service):
    service = ai_service(error=AIServiceError("boom", status_code=500))
    with pytest.raises(AIServiceError):
        asyncio.run(QualityEvaluator(service).evaluate(ISSUE))


def test_off_schema_reply_is_a_response_error(ai_service):
    service = ai_service({"categories": "not a list"})
    with pytest.raises(AIResponseError):
        asyncio.run(QualityEvaluator(service).evaluate(ISSUE))


class TestQualityScore:
    def test_sum_above_100_clamps_to_exactly_100(self):
        assert QualityScore.from_category_scores([50, 50, 30, 20]).value == 100
        assert QualityScore.from_category_scores([100, 100, 100, 100]).value == 100

    def test_sum(self):
        assert QualityScore.from_category_scores([20, 18, 25, 15]).value == 78

    def test_create_validates_range(self):
        assert QualityScore.create(64.7).value == 64
        with pytest.raises(ValidationError):
            QualityScore.create(101)
