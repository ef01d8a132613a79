"""
Tests for rubric definitions and category normalization.
"""

from team_pulse.scoring.criteria import (
    CONSISTENCY_CATEGORIES,
    MISSING_CATEGORY_FEEDBACK,
    QUALITY_CATEGORIES,
    CategoryScore,
    describe_categories,
    get_category,
    normalize_category_scores,
    validate_category_scores,
    validate_criteria,
)
from team_pulse.scoring.schemas import CategoryAssessment


def test_builtin_criteria_are_consistent():
    assert validate_criteria() == []


def test_rubric_weights():
    assert [c.weight for c in QUALITY_CATEGORIES] == [25, 25, 30, 20]
    assert [c.weight for c in CONSISTENCY_CATEGORIES] == [20, 30, 20, 20, 10]


def test_get_category():
    assert get_category(QUALITY_CATEGORIES, "acceptance-criteria").weight == 30
    assert get_category(QUALITY_CATEGORIES, "nope") is None


def test_validate_category_scores_reports_problems():
    errors = validate_category_scores(
        QUALITY_CATEGORIES,
        [
            CategoryScore("context-goal", 26),
            CategoryScore("structure-clarity", -1),
            CategoryScore("made-up", 5),
            CategoryScore("acceptance-criteria", 30),
        ],
    )
    assert len(errors) == 3
    assert "exceeds maximum" in errors[0]
    assert "0 or greater" in errors[1]
    assert "Unknown category id: made-up" == errors[2]


def test_normalize_fills_missing_and_clamps():
    assessments = [
        CategoryAssessment(category_id="context-goal", score=40, feedback="Too generous"),
        CategoryAssessment(category_id="acceptance-criteria", score=-3, feedback="None"),
        CategoryAssessment(category_id="structure-clarity", score=12.8, feedback="OK"),
        CategoryAssessment(category_id="unknown", score=10, feedback="Ignored"),
    ]
    results = normalize_category_scores(QUALITY_CATEGORIES, assessments)

    assert [r.category_id for r in results] == [c.id for c in QUALITY_CATEGORIES]
    assert [r.score for r in results] == [25, 0, 0, 12]
    missing = results[1]
    assert missing.category_id == "implementation-details"
    assert missing.feedback == MISSING_CATEGORY_FEEDBACK
    assert missing.max_score == 25


def test_normalize_keeps_first_duplicate():
    assessments = [
        CategoryAssessment(category_id="context-goal", score=10, feedback="first"),
        CategoryAssessment(category_id="context-goal", score=20, feedback="second"),
    ]
    result = normalize_category_scores(QUALITY_CATEGORIES, assessments)[0]
    assert (result.score, result.feedback) == (10, "first")


def test_describe_categories_lists_every_category():
    text = describe_categories(CONSISTENCY_CATEGORIES)
    assert text.count("\n") == len(CONSISTENCY_CATEGORIES) - 1
    assert "requirement-coverage (Requirement Coverage, max 30 points)" in text
