"""Issue description quality metric (AI-assisted, additive rubric)."""

from datetime import datetime, timezone
from typing import NamedTuple

from team_pulse.ai.base import StructuredOutputService
from team_pulse.scoring.base import (
    MAX_SCORE,
    QUALITY_GRADES,
    GradeBand,
    Score,
    grade_for_score,
)
from team_pulse.scoring.criteria import (
    QUALITY_CATEGORIES,
    CategoryResult,
    describe_categories,
    normalize_category_scores,
)
from team_pulse.scoring.schemas import QualityAssessment


class QualityScore(NamedTuple):
    """Total of category scores, bounded to [0, 100]."""

    value: int

    @classmethod
    def create(cls, value: float) -> "QualityScore":
        return cls(Score.create(int(value // 1)).value)

    @classmethod
    def from_category_scores(cls, scores: list[float]) -> "QualityScore":
        """Sum category scores; totals above 100 clamp to exactly 100."""
        return cls(Score.clamped(min(MAX_SCORE, sum(scores))).value)

    def to_grade(self, table: list[GradeBand] = QUALITY_GRADES) -> GradeBand:
        return grade_for_score(self.value, table)


class IssueForEvaluation(NamedTuple):
    number: int
    title: str
    body: str | None
    assignee: str | None = None


class QualityEvaluation(NamedTuple):
    """Result of a quality evaluation."""

    total_score: QualityScore
    grade: GradeBand
    categories: list[CategoryResult]
    overall_feedback: str
    improvement_suggestions: list[str]
    evaluated_at: datetime

    def details(self) -> dict:
        """Structured detail blob persisted with the Evaluation record."""
        return {
            "categories": [c.to_dict() for c in self.categories],
            "overall_feedback": self.overall_feedback,
            "improvement_suggestions": list(self.improvement_suggestions),
        }


def build_quality_prompt(issue: IssueForEvaluation) -> str:
    return f"""You evaluate the quality of GitHub Issues for a software team.
Evaluate the description quality of the following Issue.

## Categories and maximum points
{describe_categories(QUALITY_CATEGORIES)}

## Issue
- Number: #{issue.number}
- Title: {issue.title}
- Assignee: {issue.assignee or "(not set)"}
- Body:
{issue.body or "(no body)"}

## Guidance
Give each category a score from 0 to its maximum.

### Context & Goal (max 25)
- Background: the current problem and how this Issue came about
- Objective: the value this change brings to users or the system
- Priority: why it needs to be done now

### Implementation Details (max 25)
- Requirements: required changes are listed
- Technical constraints: impact, libraries to use, approaches to avoid
- References: links to related code, documents or designs

### Acceptance Criteria (max 30, most important)
- Checklist: completion conditions written as [ ] items
- Test requirements: error cases and edge cases, not only the happy path
- Measurability: concrete thresholds such as "responds within 200ms"

### Structure & Clarity (max 20)
- Markdown: headings, emphasis and code blocks used well
- Diagrams: screenshots or sequence diagrams where needed
- Concision: no redundancy, essential information only

Important:
- Be strict. Do not give full marks unless the Issue is flawless.
- List at most 3 improvement_suggestions, most effective first.
- Feedback must be specific and actionable.
- Use the category ids above as category_id."""


class QualityEvaluator:
    """Scores Issue descriptions through the structured-output scoring service."""

    def __init__(self, ai_service: StructuredOutputService, temperature: float | None = None):
        self.ai_service = ai_service
        self.temperature = temperature

    async def evaluate(self, issue: IssueForEvaluation) -> QualityEvaluation:
        """
        Evaluate one Issue.

        Raises:
            AIServiceError: If the scoring service fails or replies off-schema.
        """
        assessment = await self.ai_service.generate_structured_output(
            schema=QualityAssessment,
            prompt=build_quality_prompt(issue),
            temperature=self.temperature,
        )
        return self.score(assessment)

    def score(self, assessment: QualityAssessment) -> QualityEvaluation:
        categories = normalize_category_scores(QUALITY_CATEGORIES, assessment.categories)
        total = QualityScore.from_category_scores([c.score for c in categories])
        return QualityEvaluation(
            total_score=total,
            grade=total.to_grade(),
            categories=categories,
            overall_feedback=assessment.overall_feedback,
            improvement_suggestions=list(assessment.improvement_suggestions),
            evaluated_at=datetime.now(timezone.utc),
        )
