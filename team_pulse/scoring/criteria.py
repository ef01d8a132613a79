"""
Rubric definitions for the AI-assisted evaluators.
"""

from typing import NamedTuple

from team_pulse.scoring.base import (
    CONSISTENCY_GRADES,
    QUALITY_GRADES,
    validate_grade_table,
)


class EvaluationCategory(NamedTuple):
    """A rubric category; `weight` is also the category's maximum score."""

    id: str
    label: str
    weight: int
    description: str


class CategoryScore(NamedTuple):
    """A score reported for one rubric category."""

    category_id: str
    score: float


QUALITY_CATEGORIES = [
    EvaluationCategory(
        "context-goal",
        "Context & Goal",
        25,
        "Is it clear why this is being done? Background, objective and the "
        "reason for its priority are stated.",
    ),
    EvaluationCategory(
        "implementation-details",
        "Implementation Details",
        25,
        "Is it clear what concretely has to be done? Requirements, technical "
        "constraints and reference links are stated.",
    ),
    EvaluationCategory(
        "acceptance-criteria",
        "Acceptance Criteria",
        30,
        "Is 'done' defined measurably? Checklist, test requirements and "
        "measurable criteria are present.",
    ),
    EvaluationCategory(
        "structure-clarity",
        "Structure & Clarity",
        20,
        "Can another person understand it at a glance? Markdown structure, "
        "diagrams or screenshots where needed, concise wording.",
    ),
]

CONSISTENCY_CATEGORIES = [
    EvaluationCategory(
        "issue-evaluability",
        "Issue Evaluability",
        20,
        "Are the Issue requirements clear enough to judge the PR against? "
        "Deduct for vague descriptions and point out improvements.",
    ),
    EvaluationCategory(
        "requirement-coverage",
        "Requirement Coverage",
        30,
        "Are all requirements written in the Issue implemented by the PR?",
    ),
    EvaluationCategory(
        "scope-appropriateness",
        "Scope Appropriateness",
        20,
        "Is the implementation neither short of nor beyond the Issue scope "
        "(no scope creep)?",
    ),
    EvaluationCategory(
        "acceptance-criteria-achievement",
        "Acceptance Criteria Achievement",
        20,
        "Does the PR meet the Issue's acceptance criteria? Only assessable "
        "when the criteria are clear.",
    ),
    EvaluationCategory(
        "pr-description-clarity",
        "PR Description Clarity",
        10,
        "Does the PR description explain its relation to the Issue and the "
        "changes made?",
    ),
]


def get_category(categories: list[EvaluationCategory], category_id: str):
    for category in categories:
        if category.id == category_id:
            return category
    return None


def validate_category_scores(
    categories: list[EvaluationCategory], scores: list[CategoryScore]
) -> list[str]:
    """
    Check reported category scores against a rubric.

    Returns:
        List of error messages: unknown ids and scores outside [0, weight].
    """
    errors = []
    for item in scores:
        category = get_category(categories, item.category_id)
        if category is None:
            errors.append(f"Unknown category id: {item.category_id}")
            continue
        if item.score < 0:
            errors.append(f"{item.category_id}: score must be 0 or greater")
        if item.score > category.weight:
            errors.append(
                f"{item.category_id}: score ({item.score}) exceeds maximum ({category.weight})"
            )
    return errors


def validate_criteria() -> list[str]:
    """
    Check the built-in rubrics and tables for internal consistency.

    - speed tiers are strictly ascending by max_hours
    - lead-time tiers are strictly ascending by max_days
    - each rubric's weights sum to 100
    - each grade table covers its range without gaps or overlaps
    """
    from team_pulse.scoring.speed import LEAD_TIME_TIERS, SPEED_TIERS

    errors = []
    for previous, current in zip(SPEED_TIERS, SPEED_TIERS[1:]):
        if current.max_hours <= previous.max_hours:
            errors.append(f"Speed tiers are not ascending at grade {current.grade}")
    for previous, current in zip(LEAD_TIME_TIERS, LEAD_TIME_TIERS[1:]):
        if current.max_days <= previous.max_days:
            errors.append(f"Lead-time tiers are not ascending at grade {current.grade}")

    for name, categories in (
        ("quality", QUALITY_CATEGORIES),
        ("consistency", CONSISTENCY_CATEGORIES),
    ):
        total = sum(category.weight for category in categories)
        if total != 100:
            errors.append(f"{name} category weights sum to {total}, not 100")

    errors.extend(validate_grade_table(QUALITY_GRADES, 0, 100))
    errors.extend(validate_grade_table(CONSISTENCY_GRADES, 0, 100))
    return errors


class CategoryResult(NamedTuple):
    """Normalized score of one rubric category."""

    category_id: str
    category_name: str
    score: int
    max_score: int
    feedback: str

    def to_dict(self) -> dict:
        return self._asdict()


MISSING_CATEGORY_FEEDBACK = "Could not be evaluated"


def normalize_category_scores(categories: list[EvaluationCategory], assessments) -> list[CategoryResult]:
    """
    Map an AI assessment onto the fixed rubric.

    Every rubric category appears exactly once, in rubric order. A category the
    reply omitted scores 0; reported scores are floored and clamped into
    [0, weight]. Unknown category ids in the reply are ignored.
    """
    reported = {}
    for assessment in assessments:
        reported.setdefault(assessment.category_id, assessment)

    results = []
    for category in categories:
        assessment = reported.get(category.id)
        if assessment is None:
            results.append(
                CategoryResult(
                    category.id, category.label, 0, category.weight, MISSING_CATEGORY_FEEDBACK
                )
            )
            continue
        score = min(category.weight, max(0, int(assessment.score // 1)))
        results.append(
            CategoryResult(
                category.id, category.label, score, category.weight, assessment.feedback
            )
        )
    return results


def describe_categories(categories: list[EvaluationCategory]) -> str:
    """Bullet list used in evaluator prompts."""
    return "\n".join(
        f"- {c.id} ({c.label}, max {c.weight} points): {c.description}"
        for c in categories
    )
