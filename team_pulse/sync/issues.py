"""
Issue synchronization.

Fetches Issues from GitHub (optionally only those updated since a
watermark), resolves authors/assignees to registered collaborators, tags each
Issue with the sprint it was created in and upserts the batch.
"""

from datetime import datetime, timezone

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.errors import GitHubError, ValidationError
from team_pulse.results import (
    SyncResult,
    not_found,
    storage_failed,
    upstream_failed,
    validation_failed,
)
from team_pulse.sprint import calculator_for_repository
from team_pulse.storage.stores import (
    CollaboratorStore,
    IssueStore,
    RepositoryStore,
    as_utc,
)
from team_pulse.vcs.base import BaseVCSProvider

console = Console()


class SyncIssues:
    """Pulls Issues of one repository into the local store."""

    def __init__(self, session: Session, vcs: BaseVCSProvider):
        self.repositories = RepositoryStore(session)
        self.collaborators = CollaboratorStore(session)
        self.issues = IssueStore(session)
        self.vcs = vcs

    async def execute(
        self,
        repository_id: int,
        since: datetime | None = None,
        now: datetime | None = None,
    ) -> SyncResult:
        """
        Synchronize Issues.

        Args:
            repository_id: Local repository id
            since: Only Issues updated at or after this time; None for a full sync
            now: Reference time for the current sprint number (defaults to now)

        Returns:
            SyncResult; never raises for missing repositories, GitHub errors or
            storage errors.
        """
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return SyncResult(False, failure=not_found("Repository not found"))

        try:
            calculator = calculator_for_repository(repository)
        except ValidationError as e:
            return SyncResult(False, failure=validation_failed(str(e)))
        current_sprint = calculator.sprint_number(now or datetime.now(timezone.utc)).value

        try:
            remote_issues = await self.vcs.get_issues(
                repository.owner_name, repository.repo_name, since
            )
        except GitHubError as e:
            console.print(f"[red]Error fetching issues of {repository.full_name}: {e}[/red]")
            return SyncResult(
                False,
                failure=upstream_failed(f"GitHub fetch failed: {e}", e.retryable),
                current_sprint_number=current_sprint,
            )

        issues = [issue for issue in remote_issues if not issue.is_pull_request]
        if not issues:
            return SyncResult(True, 0, current_sprint_number=current_sprint)

        # Unregistered logins resolve to None; that is not an error
        logins = self.collaborators.login_map(repository_id)
        rows = [
            {
                "repository_id": repository_id,
                "github_number": issue.number,
                "title": issue.title,
                "body": issue.body,
                "state": issue.state,
                "author_collaborator_id": logins.get(issue.author_login)
                if issue.author_login
                else None,
                "assignee_collaborator_id": logins.get(issue.assignee_login)
                if issue.assignee_login
                else None,
                "sprint_number": calculator.sprint_number(issue.created_at).value,
                "github_created_at": as_utc(issue.created_at),
                "github_closed_at": as_utc(issue.closed_at),
            }
            for issue in issues
        ]

        try:
            synced = self.issues.upsert_many(rows)
        except SQLAlchemyError as e:
            console.print(f"[red]Error storing issues of {repository.full_name}: {e}[/red]")
            return SyncResult(
                False,
                failure=storage_failed(f"Failed to store issues: {e}"),
                current_sprint_number=current_sprint,
            )

        return SyncResult(
            True,
            synced,
            current_sprint_number=current_sprint,
            numbers=[issue.number for issue in issues],
        )
