"""
Shared scoring types: bounded scores and letter-grade tables.

Two scales exist and must not be mixed:
- the 0-100 scale (quality, consistency, lead time) graded A-E
- the open speed scale (120/100/70/40) graded S/A/B/C, see scoring.speed
"""

from typing import NamedTuple

from team_pulse.errors import ValidationError

MIN_SCORE = 0
MAX_SCORE = 100


class GradeBand(NamedTuple):
    """One row of a grade table: scores in [min_score, max_score] get `grade`."""

    grade: str
    min_score: int
    max_score: int
    label: str
    description: str


class Score(NamedTuple):
    """An integer score in [0, 100]."""

    value: int

    @classmethod
    def create(cls, value: int) -> "Score":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Score must be an integer: {value!r}")
        if not MIN_SCORE <= value <= MAX_SCORE:
            raise ValidationError(f"Score must be between 0 and 100: {value}")
        return cls(value)

    @classmethod
    def clamped(cls, value: float) -> "Score":
        """Floor and clamp any number into [0, 100]."""
        return cls(min(MAX_SCORE, max(MIN_SCORE, int(value // 1))))

    @classmethod
    def average(cls, scores: list["Score"]) -> "Score":
        """Rounded mean of one or more scores."""
        if not scores:
            raise ValidationError("At least one score is required to average")
        total = sum(score.value for score in scores)
        # round-half-up, matching how dashboards display averages
        return cls.create(int(total / len(scores) + 0.5))

    def grade(self, table: list[GradeBand] | None = None) -> str:
        return grade_for_score(self.value, table or FIVE_TIER_GRADES).grade


def grade_for_score(score: int, table: list[GradeBand]) -> GradeBand:
    """
    Look up the band containing a score.

    Raises:
        ValidationError: If no band contains the score.
    """
    for band in table:
        if band.min_score <= score <= band.max_score:
            return band
    raise ValidationError(f"Score {score} is outside the grade table")


def validate_grade_table(table: list[GradeBand], low: int, high: int) -> list[str]:
    """
    Check that a grade table covers [low, high] with no gaps or overlaps.

    Returns:
        List of error messages (empty when the table is valid).
    """
    errors = []
    bands = sorted(table, key=lambda band: band.min_score)
    expected = low
    for band in bands:
        if band.min_score > band.max_score:
            errors.append(f"Grade {band.grade}: min {band.min_score} > max {band.max_score}")
        if band.min_score < expected:
            errors.append(f"Grade {band.grade} overlaps the previous band at {band.min_score}")
        elif band.min_score > expected:
            errors.append(f"Gap before grade {band.grade}: {expected}-{band.min_score - 1}")
        expected = band.max_score + 1
    if expected != high + 1:
        errors.append(f"Grade table ends at {expected - 1}, expected {high}")
    return errors


GRADE_ORDER = {"S": 6, "A": 5, "B": 4, "C": 3, "D": 2, "E": 1}


def compare_grades(left: str, right: str) -> int:
    """Positive when `left` is the better grade, negative when worse, 0 when equal."""
    return GRADE_ORDER[left] - GRADE_ORDER[right]


FIVE_TIER_GRADES = [
    GradeBand("A", 81, 100, "Excellent", "Excellent."),
    GradeBand("B", 61, 80, "Good", "Good."),
    GradeBand("C", 41, 60, "Average", "Average."),
    GradeBand("D", 21, 40, "Needs Improvement", "Needs improvement."),
    GradeBand("E", 0, 20, "Needs Attention", "Needs attention."),
]

QUALITY_GRADES = [
    GradeBand(
        "A",
        81,
        100,
        "AI Ready",
        "An implementer can open a PR without asking a single question; "
        "edge cases and impact are covered.",
    ),
    GradeBand(
        "B",
        61,
        80,
        "Actionable",
        "A person can start work without hesitation; standard requirements "
        "and acceptance criteria are present.",
    ),
    GradeBand(
        "C",
        41,
        60,
        "Developing",
        "The goal is clear, but implementation details need clarification.",
    ),
    GradeBand(
        "D",
        21,
        40,
        "Needs Refinement",
        "Only a title and a line of description; the implementer must first "
        "investigate what to do.",
    ),
    GradeBand(
        "E",
        0,
        20,
        "Incomplete",
        "Required information is missing or the content is incoherent.",
    ),
]

CONSISTENCY_GRADES = [
    GradeBand(
        "A",
        81,
        100,
        "Full Match",
        "Every requirement of the Issue is implemented with appropriate scope.",
    ),
    GradeBand(
        "B",
        61,
        80,
        "Mostly Consistent",
        "Main requirements are implemented; some room for improvement.",
    ),
    GradeBand(
        "C",
        41,
        60,
        "Partially Consistent",
        "Some requirements are missing or the scope is off.",
    ),
    GradeBand(
        "D",
        21,
        40,
        "Divergent",
        "Clear divergence between the Issue requirements and the PR.",
    ),
    GradeBand(
        "E",
        0,
        20,
        "Major Divergence",
        "The relation between Issue and PR is unclear or the implementation "
        "differs substantially.",
    ),
]
