"""Completion speed and lead-time metrics (deterministic, no AI)."""

import math
from datetime import datetime
from typing import NamedTuple

from team_pulse.errors import ValidationError
from team_pulse.scoring.base import GradeBand, grade_for_score


class SpeedTier(NamedTuple):
    max_hours: float
    score: int
    grade: str
    message: str


class SpeedResult(NamedTuple):
    """Speed evaluation of a closed Issue."""

    score: int
    grade: str
    message: str
    completion_hours: float  # Rounded to one decimal


# Open scale: the top tier scores above 100 on purpose.
SPEED_TIERS = [
    SpeedTier(24, 120, "S", "Developing in small increments. Excellent."),
    SpeedTier(72, 100, "A", "A very healthy development pace."),
    SpeedTier(120, 70, "B", "The task may be growing too large; consider splitting it."),
    SpeedTier(math.inf, 40, "C", "Something is probably blocked; talk to a mentor."),
]

SPEED_GRADES = [
    GradeBand("S", 101, 120, "Small increments", SPEED_TIERS[0].message),
    GradeBand("A", 71, 100, "Healthy", SPEED_TIERS[1].message),
    GradeBand("B", 41, 70, "Growing", SPEED_TIERS[2].message),
    GradeBand("C", 0, 40, "Blocked", SPEED_TIERS[3].message),
]


def completion_hours(created_at: datetime, closed_at: datetime) -> float:
    """
    Hours between creation and closing.

    Raises:
        ValidationError: If closed_at is before created_at.
    """
    hours = (closed_at - created_at).total_seconds() / 3600
    if hours < 0:
        raise ValidationError(
            f"Closed at {closed_at.isoformat()} is before created at {created_at.isoformat()}"
        )
    return hours


def speed_tier(hours: float) -> SpeedTier:
    """First tier, in ascending max_hours order, whose bound is >= hours."""
    if hours < 0:
        raise ValidationError(f"Elapsed hours must be 0 or greater: {hours}")
    for tier in SPEED_TIERS:
        if hours <= tier.max_hours:
            return tier
    return SPEED_TIERS[-1]


def evaluate_hours(hours: float) -> SpeedResult:
    tier = speed_tier(hours)
    return SpeedResult(tier.score, tier.grade, tier.message, round(hours, 1))


def evaluate_speed(
    state: str, created_at: datetime, closed_at: datetime | None
) -> SpeedResult | None:
    """
    Evaluates completion speed of an Issue.

    Scoring:
    - <=24h: 120 (S)
    - <=72h: 100 (A)
    - <=120h: 70 (B)
    - >120h: 40 (C)

    Returns:
        None when the Issue is open or has no close timestamp (not evaluable).

    Raises:
        ValidationError: If the Issue was closed before it was created.
    """
    if state == "open" or closed_at is None:
        return None
    return evaluate_hours(completion_hours(created_at, closed_at))


def speed_grade_for_score(score: int) -> str:
    """Grade on the speed scale for an (averaged) speed score."""
    return grade_for_score(min(score, 120), SPEED_GRADES).grade


# --- Lead time (separate 0-100 day-based metric) ---


class LeadTimeTier(NamedTuple):
    max_days: float
    score: int
    grade: str
    label: str


class LeadTimeResult(NamedTuple):
    score: int
    grade: str
    label: str
    lead_time_days: float

    @property
    def lead_time_hours(self) -> float:
        return self.lead_time_days * 24

    @property
    def message(self) -> str:
        days = round(self.lead_time_days, 1)
        tier = next(t for t in LEAD_TIME_TIERS if t.grade == self.grade)
        if math.isinf(tier.max_days):
            return f"Completed in {days}d (over 5 days)"
        return f"Completed in {days}d (within {tier.max_days:g} days)"


LEAD_TIME_TIERS = [
    LeadTimeTier(2, 100, "A", "Excellent"),
    LeadTimeTier(3, 80, "B", "Good"),
    LeadTimeTier(4, 60, "C", "Average"),
    LeadTimeTier(5, 40, "D", "Slow"),
    LeadTimeTier(math.inf, 20, "E", "Very Slow"),
]


def lead_time_from_days(days: float) -> LeadTimeResult:
    """
    Evaluates lead time in days.

    Scoring: <=2d 100 (A), <=3d 80 (B), <=4d 60 (C), <=5d 40 (D), else 20 (E).

    Raises:
        ValidationError: If days is negative.
    """
    if days < 0:
        raise ValidationError(f"Lead time must be 0 or greater: {days}")
    for tier in LEAD_TIME_TIERS:
        if days <= tier.max_days:
            return LeadTimeResult(tier.score, tier.grade, tier.label, days)
    tier = LEAD_TIME_TIERS[-1]
    return LeadTimeResult(tier.score, tier.grade, tier.label, days)


def lead_time_from_hours(hours: float) -> LeadTimeResult:
    if hours < 0:
        raise ValidationError(f"Lead time must be 0 or greater: {hours}")
    return lead_time_from_days(hours / 24)
