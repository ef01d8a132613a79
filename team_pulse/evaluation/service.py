"""
Per-Issue evaluation: computes one score slot and persists it.

Every method returns an EvaluationOutcome; failures of the scoring service,
GitHub or the store are reported in the outcome rather than raised.
"""

import asyncio

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.ai.base import StructuredOutputService
from team_pulse.config import get_http_timeout
from team_pulse.errors import AIServiceError, AIServiceTimeout, GitHubError, ValidationError
from team_pulse.evaluation.linked_prs import LinkedPullRequestResolver
from team_pulse.results import (
    EvaluationOutcome,
    EvaluationStatus,
    Failure,
    not_found,
    storage_failed,
    upstream_failed,
    validation_failed,
)
from team_pulse.scoring.consistency import ConsistencyEvaluator, IssueForConsistency
from team_pulse.scoring.quality import IssueForEvaluation, QualityEvaluator
from team_pulse.scoring.speed import evaluate_speed
from team_pulse.storage.stores import CollaboratorStore, EvaluationStore, IssueStore, as_utc

NO_LINKED_PRS_REASON = "No merged pull request is linked to this issue"


def _failed(issue_id: int, failure: Failure, rate_limited: bool = False) -> EvaluationOutcome:
    return EvaluationOutcome(
        issue_id,
        EvaluationStatus.FAILED,
        reason=failure.message,
        failure=failure,
        rate_limited=rate_limited,
    )


def _ai_failed(issue_id: int, error: AIServiceError) -> EvaluationOutcome:
    return _failed(
        issue_id,
        upstream_failed(f"Scoring service failed: {error}", error.retryable),
        rate_limited=error.is_rate_limited,
    )


class IssueEvaluationService:
    """Evaluates Issues along the speed, quality and consistency dimensions."""

    def __init__(
        self,
        session: Session,
        ai_service: StructuredOutputService | None = None,
        linked_prs: LinkedPullRequestResolver | None = None,
        timeout: float | None = None,
    ):
        """
        Args:
            session: Database session
            ai_service: Needed for quality and consistency
            linked_prs: Needed for consistency
            timeout: Upper bound in seconds for one scoring-service call
        """
        self.issues = IssueStore(session)
        self.collaborators = CollaboratorStore(session)
        self.evaluations = EvaluationStore(session)
        self.ai_service = ai_service
        self.linked_prs = linked_prs
        self.timeout = timeout if timeout is not None else get_http_timeout()

    async def _with_timeout(self, coro):
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError as e:
            raise AIServiceTimeout(f"No reply within {self.timeout:g}s") from e

    def evaluate_speed(self, issue_id: int) -> EvaluationOutcome:
        """Deterministic speed score; open Issues are not evaluable."""
        issue = self.issues.find_by_id(issue_id)
        if issue is None:
            return _failed(issue_id, not_found("Issue not found"))

        try:
            result = evaluate_speed(
                issue.state, as_utc(issue.github_created_at), as_utc(issue.github_closed_at)
            )
        except ValidationError as e:
            return _failed(issue_id, validation_failed(str(e)))
        if result is None:
            return EvaluationOutcome(
                issue_id, EvaluationStatus.NOT_EVALUABLE, reason="Issue is not closed"
            )

        try:
            self.evaluations.save_speed(issue_id, result.score, result.grade)
        except SQLAlchemyError as e:
            return _failed(issue_id, storage_failed(f"Failed to store speed score: {e}"))
        return EvaluationOutcome(
            issue_id, EvaluationStatus.EVALUATED, result.score, result.grade, result.message
        )

    async def evaluate_quality(self, issue_id: int) -> EvaluationOutcome:
        if self.ai_service is None:
            raise ValueError("Quality evaluation needs a scoring service")
        issue = self.issues.find_by_id(issue_id)
        if issue is None:
            return _failed(issue_id, not_found("Issue not found"))

        assignee = None
        if issue.assignee_collaborator_id:
            collaborator = self.collaborators.find_by_id(issue.assignee_collaborator_id)
            assignee = collaborator.github_user_name if collaborator else None
        subject = IssueForEvaluation(issue.github_number, issue.title, issue.body, assignee)

        try:
            evaluation = await self._with_timeout(
                QualityEvaluator(self.ai_service).evaluate(subject)
            )
        except AIServiceError as e:
            return _ai_failed(issue_id, e)

        try:
            self.evaluations.save_quality(
                issue_id,
                evaluation.total_score.value,
                evaluation.grade.grade,
                evaluation.details(),
                evaluation.evaluated_at,
            )
        except SQLAlchemyError as e:
            return _failed(issue_id, storage_failed(f"Failed to store quality score: {e}"))
        return EvaluationOutcome(
            issue_id,
            EvaluationStatus.EVALUATED,
            evaluation.total_score.value,
            evaluation.grade.grade,
        )

    async def evaluate_consistency(self, issue_id: int) -> EvaluationOutcome:
        """
        Score how well the Issue's merged PRs implement it.

        An Issue without linked PRs is skipped without calling the scoring
        service.
        """
        if self.ai_service is None or self.linked_prs is None:
            raise ValueError("Consistency evaluation needs a scoring service and a PR resolver")
        issue = self.issues.find_by_id(issue_id)
        if issue is None:
            return _failed(issue_id, not_found("Issue not found"))

        try:
            linked_prs = await self.linked_prs.resolve(issue)
        except GitHubError as e:
            return _failed(
                issue_id,
                upstream_failed(f"Failed to fetch linked pull requests: {e}", e.retryable),
                rate_limited=e.is_rate_limited,
            )
        if not linked_prs:
            return EvaluationOutcome(issue_id, EvaluationStatus.SKIPPED, reason=NO_LINKED_PRS_REASON)

        subject = IssueForConsistency(issue.github_number, issue.title, issue.body)
        try:
            evaluation = await self._with_timeout(
                ConsistencyEvaluator(self.ai_service).evaluate(subject, linked_prs)
            )
        except AIServiceError as e:
            return _ai_failed(issue_id, e)

        try:
            self.evaluations.save_consistency(
                issue_id,
                evaluation.total_score.value,
                evaluation.grade.grade,
                evaluation.details(),
                evaluation.evaluated_at,
            )
        except SQLAlchemyError as e:
            return _failed(issue_id, storage_failed(f"Failed to store consistency score: {e}"))
        return EvaluationOutcome(
            issue_id,
            EvaluationStatus.EVALUATED,
            evaluation.total_score.value,
            evaluation.grade.grade,
        )
