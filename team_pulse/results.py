"""
Result types returned by the synchronization and evaluation use cases.

Use cases never raise past their boundary; they hand back one of these
NamedTuples instead.
"""

from collections.abc import Sequence
from enum import Enum
from typing import Any, NamedTuple


class FailureKind(str, Enum):
    """Category of a use-case failure."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    STORAGE = "storage"


class Failure(NamedTuple):
    """A typed failure with a human-readable message."""

    kind: FailureKind
    message: str
    retryable: bool = False


def not_found(message: str) -> Failure:
    return Failure(FailureKind.NOT_FOUND, message)


def validation_failed(message: str) -> Failure:
    return Failure(FailureKind.VALIDATION, message)


def upstream_failed(message: str, retryable: bool = True) -> Failure:
    return Failure(FailureKind.UPSTREAM, message, retryable)


def storage_failed(message: str) -> Failure:
    return Failure(FailureKind.STORAGE, message, True)


class SyncResult(NamedTuple):
    """Outcome of an Issue or Pull Request synchronization."""

    success: bool
    synced_count: int = 0
    failure: Failure | None = None
    current_sprint_number: int | None = None
    numbers: Sequence[int] = ()  # Remote numbers that were upserted

    @property
    def error(self) -> str | None:
        return self.failure.message if self.failure else None


class LinkResult(NamedTuple):
    """Outcome of linking Pull Requests to the Issues they close."""

    linked: int = 0
    unlinked: int = 0
    failed: int = 0
    errors: Sequence[str] = ()


class RepositorySyncReport(NamedTuple):
    """Combined outcome of syncing one repository."""

    issues: SyncResult
    pull_requests: SyncResult
    links: LinkResult | None = None
    watermark_advanced: bool = False
    failure: Failure | None = None  # Repository missing, or the watermark could not be stored

    @property
    def success(self) -> bool:
        return (
            self.failure is None
            and self.issues.success
            and self.pull_requests.success
        )


class CollaboratorsResult(NamedTuple):
    """Outcome of collaborator registration."""

    success: bool
    collaborators: Sequence[Any] = ()
    created_count: int = 0
    source: str | None = None  # Which host listing produced the candidates
    failure: Failure | None = None


class RepositoryResult(NamedTuple):
    """Outcome of repository registration."""

    success: bool
    repository: Any = None
    failure: Failure | None = None


class EvaluationStatus(str, Enum):
    """Per-Issue evaluation outcome."""

    EVALUATED = "evaluated"
    SKIPPED = "skipped"
    NOT_EVALUABLE = "not_evaluable"
    FAILED = "failed"


class EvaluationOutcome(NamedTuple):
    """Outcome of evaluating one Issue along one dimension."""

    issue_id: int
    status: EvaluationStatus
    score: int | None = None
    grade: str | None = None
    reason: str | None = None
    failure: Failure | None = None
    rate_limited: bool = False  # Upstream answered HTTP 429


class BatchReport(NamedTuple):
    """Aggregate outcome of a batch evaluation run."""

    evaluated: int
    skipped: int
    failed: int
    remaining: int
    outcomes: Sequence[EvaluationOutcome] = ()
    stopped_early: bool = False  # Upstream rate limit hit; later items not attempted

    @property
    def reasons(self) -> dict[int, str]:
        """Itemized skip/failure reasons keyed by issue id."""
        return {
            outcome.issue_id: outcome.reason
            for outcome in self.outcomes
            if outcome.reason
            and outcome.status
            in (EvaluationStatus.SKIPPED, EvaluationStatus.FAILED)
        }
