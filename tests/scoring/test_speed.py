"""
Tests for the speed and lead-time metrics.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from team_pulse.errors import ValidationError
from team_pulse.scoring.base import compare_grades
from team_pulse.scoring.speed import (
    evaluate_hours,
    evaluate_speed,
    lead_time_from_days,
    lead_time_from_hours,
    speed_grade_for_score,
    speed_tier,
)

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_closed_within_a_day_scores_s():
    """Created 2024-01-01T00:00Z, closed 23h later: 120 / S."""
    result = evaluate_speed("closed", CREATED, datetime(2024, 1, 1, 23, tzinfo=timezone.utc))
    assert result.score == 120
    assert result.grade == "S"
    assert result.completion_hours == 23.0


def test_closed_after_nine_days_scores_c():
    """Created 2024-01-01, closed 2024-01-10 (216h): 40 / C."""
    result = evaluate_speed("closed", CREATED, datetime(2024, 1, 10, tzinfo=timezone.utc))
    assert result.score == 40
    assert result.grade == "C"
    assert result.completion_hours == 216.0


def test_open_issue_is_not_evaluable():
    assert evaluate_speed("open", CREATED, None) is None
    assert evaluate_speed("open", CREATED, CREATED + timedelta(hours=1)) is None


def test_closed_issue_without_close_time_is_not_evaluable():
    assert evaluate_speed("closed", CREATED, None) is None


def test_close_before_create_is_rejected():
    with pytest.raises(ValidationError):
        evaluate_speed("closed", CREATED, CREATED - timedelta(minutes=1))


@pytest.mark.parametrize(
    "hours,score,grade",
    [
        (0, 120, "S"),
        (24, 120, "S"),
        (24.01, 100, "A"),
        (72, 100, "A"),
        (72.5, 70, "B"),
        (120, 70, "B"),
        (120.1, 40, "C"),
        (10_000, 40, "C"),
    ],
)
def test_tier_boundaries_are_inclusive(hours, score, grade):
    result = evaluate_hours(hours)
    assert (result.score, result.grade) == (score, grade)


def test_speed_grade_is_monotonically_non_increasing():
    previous = speed_tier(0).grade
    for tenth in range(0, 2000):
        grade = speed_tier(tenth / 10).grade
        assert compare_grades(grade, previous) <= 0
        previous = grade


def test_negative_hours_are_rejected():
    with pytest.raises(ValidationError):
        speed_tier(-0.5)


def test_speed_grade_for_averaged_scores():
    assert speed_grade_for_score(120) == "S"
    assert speed_grade_for_score(110) == "S"
    assert speed_grade_for_score(100) == "A"
    assert speed_grade_for_score(85) == "A"
    assert speed_grade_for_score(70) == "B"
    assert speed_grade_for_score(40) == "C"


class TestLeadTime:
    @pytest.mark.parametrize(
        "days,score,grade",
        [(0.5, 100, "A"), (2, 100, "A"), (2.5, 80, "B"), (3, 80, "B"), (4, 60, "C"), (5, 40, "D"), (9, 20, "E")],
    )
    def test_day_tiers(self, days, score, grade):
        result = lead_time_from_days(days)
        assert (result.score, result.grade) == (score, grade)

    def test_hours_are_converted_to_days(self):
        result = lead_time_from_hours(60)
        assert result.lead_time_days == 2.5
        assert result.lead_time_hours == 60
        assert result.grade == "B"

    def test_messages(self):
        assert lead_time_from_days(1.25).message == "Completed in 1.2d (within 2 days)"
        assert lead_time_from_days(8).message == "Completed in 8d (over 5 days)"

    def test_negative_lead_time_is_rejected(self):
        with pytest.raises(ValidationError):
            lead_time_from_days(-1)
        with pytest.raises(ValidationError):
            lead_time_from_hours(-1)

    def test_scales_stay_distinct(self):
        """A 1-day Issue is S/120 for speed but A/100 for lead time."""
        assert evaluate_hours(24).grade == "S"
        assert lead_time_from_hours(24).grade == "A"
        assert not math.isclose(evaluate_hours(24).score, lead_time_from_hours(24).score)
