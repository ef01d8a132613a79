"""
Batch evaluation of the Issues of a repository that lack a score.

AI-assisted dimensions run with a small fan-out limit. One Issue failing
never aborts the batch; an upstream rate limit (HTTP 429) stops scheduling
further Issues, which are reported as remaining.
"""

import asyncio
from collections.abc import Awaitable, Callable

from rich.console import Console
from sqlalchemy.orm import Session

from team_pulse.config import get_max_concurrency
from team_pulse.evaluation.service import IssueEvaluationService
from team_pulse.results import BatchReport, EvaluationOutcome, EvaluationStatus
from team_pulse.storage.stores import EvaluationStore

console = Console()

DEFAULT_BATCH_LIMIT = 10
MAX_BATCH_LIMIT = 20

DIMENSIONS = ("speed", "quality", "consistency")


def _report(outcomes: list[EvaluationOutcome], remaining: int, stopped_early: bool) -> BatchReport:
    def count(status):
        return sum(1 for outcome in outcomes if outcome.status == status)

    return BatchReport(
        evaluated=count(EvaluationStatus.EVALUATED),
        # Open Issues are not scored for speed, like skips
        skipped=count(EvaluationStatus.SKIPPED) + count(EvaluationStatus.NOT_EVALUABLE),
        failed=count(EvaluationStatus.FAILED),
        remaining=remaining,
        outcomes=outcomes,
        stopped_early=stopped_early,
    )


class BatchEvaluator:
    """Evaluates the unevaluated Issues of a repository along one dimension."""

    def __init__(
        self,
        session: Session,
        service: IssueEvaluationService,
        max_concurrency: int | None = None,
    ):
        self.evaluations = EvaluationStore(session)
        self.service = service
        self.max_concurrency = max_concurrency or get_max_concurrency()

    def run_speed(self, repository_id: int) -> BatchReport:
        """Score every closed Issue that has no speed score yet (no AI, no limit)."""
        issues = self.evaluations.find_issues_missing(repository_id, "speed", closed_only=True)
        outcomes = [self.service.evaluate_speed(issue.id) for issue in issues]
        return _report(outcomes, 0, False)

    async def run(
        self, repository_id: int, dimension: str, limit: int = DEFAULT_BATCH_LIMIT
    ) -> BatchReport:
        """
        Evaluate up to `limit` Issues (capped at MAX_BATCH_LIMIT).

        Args:
            repository_id: Local repository id
            dimension: "speed", "quality" or "consistency"
            limit: Issues to attempt in this run; ignored for speed

        Raises:
            ValueError: If the dimension is unknown.
        """
        if dimension not in DIMENSIONS:
            raise ValueError(f"Unknown evaluation dimension: {dimension}")
        if dimension == "speed":
            return self.run_speed(repository_id)

        if dimension == "quality":
            candidates = self.evaluations.find_issues_missing(repository_id, "quality")
            evaluate = self.service.evaluate_quality
        else:
            candidates = self.evaluations.find_issues_missing(
                repository_id, "consistency", closed_only=True
            )
            evaluate = self.service.evaluate_consistency

        limit = max(1, min(limit, MAX_BATCH_LIMIT))
        selected = candidates[:limit]
        numbers = {issue.id: issue.github_number for issue in selected}
        outcomes, stopped = await self._run_bounded(list(numbers), evaluate, numbers)
        return _report(outcomes, len(candidates) - len(outcomes), stopped)

    async def _run_bounded(
        self,
        issue_ids: list[int],
        evaluate: Callable[[int], Awaitable[EvaluationOutcome]],
        numbers: dict[int, int],
    ) -> tuple[list[EvaluationOutcome], bool]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        rate_limited = asyncio.Event()

        async def worker(issue_id: int) -> EvaluationOutcome | None:
            async with semaphore:
                if rate_limited.is_set():
                    return None
                outcome = await evaluate(issue_id)
                number = numbers.get(issue_id)
                if outcome.status == EvaluationStatus.EVALUATED:
                    console.print(
                        f"  -> Issue #{number} evaluated: {outcome.grade} ({outcome.score}pts)"
                    )
                elif outcome.status == EvaluationStatus.SKIPPED:
                    console.print(f"  [dim]Issue #{number} skipped: {outcome.reason}[/dim]")
                else:
                    console.print(f"  [red]Issue #{number} failed: {outcome.reason}[/red]")
                if outcome.rate_limited:
                    console.print("[yellow]⚠️  Rate limit hit, stopping batch[/yellow]")
                    rate_limited.set()
                return outcome

        results = await asyncio.gather(*(worker(issue_id) for issue_id in issue_ids))
        outcomes = [outcome for outcome in results if outcome is not None]
        return outcomes, rate_limited.is_set()
