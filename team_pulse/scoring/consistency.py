"""
Issue/Pull Request consistency metric (AI-assisted, cross-entity rubric).

The additive category rubric is the canonical representation. The
deduction-based view (100 minus itemized deductions) is derived from it, and
both grade through the same A-E table.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import NamedTuple

from team_pulse.ai.base import StructuredOutputService
from team_pulse.errors import ValidationError
from team_pulse.scoring.base import CONSISTENCY_GRADES, MAX_SCORE, GradeBand, Score, grade_for_score
from team_pulse.scoring.criteria import (
    CONSISTENCY_CATEGORIES,
    CategoryResult,
    describe_categories,
    normalize_category_scores,
)
from team_pulse.scoring.schemas import ConsistencyAssessment
from team_pulse.vcs.base import LinkedPullRequest


class Deduction(NamedTuple):
    reason: str
    points: int


class ConsistencyScore(NamedTuple):
    """A consistency score together with the deductions that explain it."""

    score: Score
    deductions: Sequence[Deduction] = ()
    summary: str | None = None

    @classmethod
    def from_deductions(
        cls, deductions: list[Deduction], summary: str | None = None
    ) -> "ConsistencyScore":
        """
        Start at 100 and subtract each deduction (floored at 0).

        Raises:
            ValidationError: If a deduction is negative, not an integer, or has no reason.
        """
        for deduction in deductions:
            if isinstance(deduction.points, bool) or not isinstance(deduction.points, int):
                raise ValidationError(
                    f"Deduction points must be an integer: {deduction.points!r}"
                )
            if deduction.points < 0:
                raise ValidationError(
                    f"Deduction points must be 0 or greater: {deduction.points}"
                )
            if not deduction.reason.strip():
                raise ValidationError("Deduction reason must not be empty")
        total = sum(d.points for d in deductions)
        return cls(Score.create(max(0, MAX_SCORE - total)), list(deductions), summary)

    @classmethod
    def from_categories(
        cls, categories: list[CategoryResult], summary: str | None = None
    ) -> "ConsistencyScore":
        """Deduction view of normalized rubric categories: one deduction per missed point."""
        deductions = [
            Deduction(f"{c.category_name}: {c.feedback}", c.max_score - c.score)
            for c in categories
            if c.score < c.max_score
        ]
        # Weights sum to 100, so 100 - deductions equals the additive total
        total = Score.clamped(min(MAX_SCORE, sum(c.score for c in categories)))
        return cls(total, deductions, summary)

    @property
    def value(self) -> int:
        return self.score.value

    @property
    def total_deduction(self) -> int:
        return sum(d.points for d in self.deductions)

    @property
    def is_perfect(self) -> bool:
        return self.score.value == MAX_SCORE

    def to_grade(self) -> GradeBand:
        return grade_for_score(self.score.value, CONSISTENCY_GRADES)

    def describe(self) -> str:
        if not self.deductions:
            return self.summary or "The Issue and its Pull Requests are consistent."
        lines = "\n".join(f"- {d.reason} (-{d.points})" for d in self.deductions)
        return f"{self.summary or 'Consistency evaluation'}\n\nDeductions:\n{lines}"


class IssueForConsistency(NamedTuple):
    number: int
    title: str
    body: str | None


class ConsistencyEvaluation(NamedTuple):
    """Result of a consistency evaluation."""

    total_score: ConsistencyScore
    grade: GradeBand
    linked_prs: list[dict]
    categories: list[CategoryResult]
    overall_feedback: str
    issue_improvement_suggestions: list[str]
    evaluated_at: datetime

    def details(self) -> dict:
        return {
            "linked_prs": self.linked_prs,
            "categories": [c.to_dict() for c in self.categories],
            "overall_feedback": self.overall_feedback,
            "issue_improvement_suggestions": list(self.issue_improvement_suggestions),
        }


def _describe_pull_request(pr: LinkedPullRequest) -> str:
    merged_at = pr.merged_at.isoformat() if pr.merged_at else "(not merged)"
    return f"""
### PR #{pr.number}: {pr.title}
- URL: {pr.url}
- Changed files: {len(pr.changed_files)}
- Additions: {pr.additions}, deletions: {pr.deletions}
- Merged at: {merged_at}

#### Description
{pr.body or "(no description)"}

#### Changes (diff)
```
{pr.diff or "(no diff)"}
```
"""


def build_consistency_prompt(
    issue: IssueForConsistency, linked_prs: list[LinkedPullRequest]
) -> str:
    prs = "\n---\n".join(_describe_pull_request(pr) for pr in linked_prs)
    return f"""You review code for a software team.
Evaluate how consistent the following GitHub Issue is with its linked Pull Requests.

## Categories and maximum points
{describe_categories(CONSISTENCY_CATEGORIES)}

## Issue
- Number: #{issue.number}
- Title: {issue.title}
- Body:
{issue.body or "(no body)"}

## Linked Pull Requests ({len(linked_prs)} total)
{prs}

## Guidance

### Issue Evaluability (max 20)
- Requirements are clearly written
- There is enough information to judge whether the PR meets them
- Deduct when vague and add the fix to issue_improvement_suggestions

### Requirement Coverage (max 30)
- Every requirement of the Issue is implemented by the PRs
- Name any requirement that is missing

### Scope Appropriateness (max 20)
- No implementation outside the requirements (scope creep)

### Acceptance Criteria Achievement (max 20)
- The PRs satisfy the Issue's acceptance criteria when there are any
- When the criteria are unclear, say so in issue_improvement_suggestions

### PR Description Clarity (max 10)
- The PR description explains its relation to the Issue and its changes

Important:
- Be strict. Do not give full marks unless the consistency is flawless.
- Read the diff carefully and compare it against the Issue requirements.
- Leave issue_improvement_suggestions empty when the Issue description is adequate.
- Use the category ids above as category_id."""


class ConsistencyEvaluator:
    """Scores Issue/PR consistency through the structured-output scoring service."""

    def __init__(self, ai_service: StructuredOutputService, temperature: float | None = None):
        self.ai_service = ai_service
        self.temperature = temperature

    async def evaluate(
        self, issue: IssueForConsistency, linked_prs: list[LinkedPullRequest]
    ) -> ConsistencyEvaluation:
        """
        Evaluate one Issue against its linked Pull Requests.

        Callers must skip Issues without linked PRs before calling this.

        Raises:
            ValueError: If linked_prs is empty.
            AIServiceError: If the scoring service fails or replies off-schema.
        """
        if not linked_prs:
            raise ValueError("At least one linked Pull Request is required")
        assessment = await self.ai_service.generate_structured_output(
            schema=ConsistencyAssessment,
            prompt=build_consistency_prompt(issue, linked_prs),
            temperature=self.temperature,
        )
        return self.score(assessment, linked_prs)

    def score(
        self, assessment: ConsistencyAssessment, linked_prs: list[LinkedPullRequest]
    ) -> ConsistencyEvaluation:
        categories = normalize_category_scores(
            CONSISTENCY_CATEGORIES, assessment.categories
        )
        total = ConsistencyScore.from_categories(categories, assessment.overall_feedback)
        return ConsistencyEvaluation(
            total_score=total,
            grade=total.to_grade(),
            linked_prs=[
                {"number": pr.number, "title": pr.title, "url": pr.url}
                for pr in linked_prs
            ],
            categories=categories,
            overall_feedback=assessment.overall_feedback,
            issue_improvement_suggestions=list(assessment.issue_improvement_suggestions),
            evaluated_at=datetime.now(timezone.utc),
        )
