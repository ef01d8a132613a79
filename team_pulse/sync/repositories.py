"""
Repository registration, sprint settings and per-repository GitHub clients.
"""

from datetime import date

from rich.console import Console
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.errors import ValidationError
from team_pulse.results import (
    RepositoryResult,
    SyncResult,
    not_found,
    storage_failed,
    validation_failed,
)
from team_pulse.sprint import (
    DEFAULT_DURATION_WEEKS,
    DEFAULT_START_DAY_OF_WEEK,
    calculator_for_repository,
)
from team_pulse.storage.models import Repository
from team_pulse.storage.stores import IssueStore, RepositoryStore
from team_pulse.token_cipher import decrypt_token, encrypt_token
from team_pulse.vcs import get_vcs_provider
from team_pulse.vcs.base import BaseVCSProvider

console = Console()

ALLOWED_DURATION_WEEKS = (1, 2)


def validate_sprint_settings(start_day_of_week: int, duration_weeks: int) -> None:
    """
    Raises:
        ValidationError: If the weekday is outside 0-6 or the duration is not 1 or 2 weeks.
    """
    if isinstance(start_day_of_week, bool) or not isinstance(start_day_of_week, int):
        raise ValidationError(f"Sprint start day must be an integer: {start_day_of_week!r}")
    if not 0 <= start_day_of_week <= 6:
        raise ValidationError(
            f"Sprint start day must be 0 (Sunday) to 6 (Saturday): {start_day_of_week}"
        )
    if duration_weeks not in ALLOWED_DURATION_WEEKS:
        raise ValidationError(f"Sprint duration must be 1 or 2 weeks: {duration_weeks}")


class RegisterRepository:
    """Registers a repository to track."""

    def __init__(self, session: Session):
        self.repositories = RepositoryStore(session)

    def execute(
        self,
        owner: str,
        name: str,
        token: str | None = None,
        tracking_start_date: date | None = None,
        sprint_start_day_of_week: int = DEFAULT_START_DAY_OF_WEEK,
        sprint_duration_weeks: int = DEFAULT_DURATION_WEEKS,
    ) -> RepositoryResult:
        owner = (owner or "").strip()
        name = (name or "").strip()
        if not owner or not name:
            return RepositoryResult(
                False, failure=validation_failed("Owner and repository name are required")
            )

        try:
            validate_sprint_settings(sprint_start_day_of_week, sprint_duration_weeks)
            token_encrypted = encrypt_token(token) if token else None
        except ValidationError as e:
            return RepositoryResult(False, failure=validation_failed(str(e)))

        if self.repositories.find_by_owner_and_name(owner, name) is not None:
            return RepositoryResult(
                False, failure=validation_failed(f"Repository {owner}/{name} is already registered")
            )

        try:
            repository = self.repositories.create(
                owner,
                name,
                tracking_start_date=tracking_start_date or date.today(),
                sprint_start_day_of_week=sprint_start_day_of_week,
                sprint_duration_weeks=sprint_duration_weeks,
                token_encrypted=token_encrypted,
            )
        except IntegrityError:
            # Registered concurrently between the lookup and the insert
            self.repositories.session.rollback()
            return RepositoryResult(
                False, failure=validation_failed(f"Repository {owner}/{name} is already registered")
            )
        return RepositoryResult(True, repository=repository)


class RecalculateSprintNumbers:
    """Re-derives every Issue's sprint number from its creation date."""

    def __init__(self, session: Session):
        self.repositories = RepositoryStore(session)
        self.issues = IssueStore(session)

    def execute(self, repository_id: int) -> SyncResult:
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return SyncResult(False, failure=not_found("Repository not found"))

        calculator = calculator_for_repository(repository)
        sprint_numbers = {
            issue.id: calculator.sprint_number(issue.github_created_at).value
            for issue in self.issues.find_by_repository_id(repository_id)
        }
        try:
            changed = self.issues.update_sprint_numbers(sprint_numbers)
        except SQLAlchemyError as e:
            self.repositories.session.rollback()
            return SyncResult(False, failure=storage_failed(f"Failed to store sprint numbers: {e}"))
        return SyncResult(True, synced_count=changed)


class UpdateSprintSettings:
    """Changes a repository's sprint settings and re-buckets its Issues."""

    def __init__(self, session: Session):
        self.session = session
        self.repositories = RepositoryStore(session)

    def execute(
        self,
        repository_id: int,
        sprint_start_day_of_week: int | None = None,
        sprint_duration_weeks: int | None = None,
        tracking_start_date: date | None = None,
    ) -> RepositoryResult:
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return RepositoryResult(False, failure=not_found("Repository not found"))

        start_day = (
            sprint_start_day_of_week
            if sprint_start_day_of_week is not None
            else repository.sprint_start_day_of_week
        )
        duration = sprint_duration_weeks or repository.sprint_duration_weeks
        try:
            validate_sprint_settings(start_day, duration)
        except ValidationError as e:
            return RepositoryResult(False, failure=validation_failed(str(e)))

        repository.sprint_start_day_of_week = start_day
        repository.sprint_duration_weeks = duration
        if tracking_start_date is not None:
            repository.tracking_start_date = tracking_start_date
        try:
            self.repositories.save(repository)
        except SQLAlchemyError as e:
            return RepositoryResult(
                False, failure=storage_failed(f"Failed to store sprint settings: {e}")
            )

        recalculated = RecalculateSprintNumbers(self.session).execute(repository_id)
        if not recalculated.success:
            return RepositoryResult(False, repository=repository, failure=recalculated.failure)
        console.print(
            f"[dim]Recalculated sprint numbers of {recalculated.synced_count} issue(s) "
            f"in {repository.full_name}[/dim]"
        )
        return RepositoryResult(True, repository=repository)


def github_provider_for(repository: Repository, **kwargs) -> BaseVCSProvider:
    """
    GitHub client authenticated with the repository's stored token.

    Falls back to GITHUB_TOKEN when the repository has no token of its own.
    """
    token = decrypt_token(repository.token_encrypted) if repository.token_encrypted else None
    return get_vcs_provider("github", token=token, **kwargs)
