"""
Collaborator registration.

Candidates come from the first GitHub listing that is available, tried in
order: contributors, collaborators, issue authors. A listing the token may
not read answers None and the next one is tried.
"""

from collections.abc import Awaitable, Callable

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.errors import GitHubError
from team_pulse.results import (
    CollaboratorsResult,
    not_found,
    storage_failed,
    upstream_failed,
)
from team_pulse.storage.stores import CollaboratorStore, RepositoryStore
from team_pulse.vcs.base import BaseVCSProvider, RemoteUser

console = Console()

UserListing = Callable[[str, str], Awaitable[list[RemoteUser] | None]]


def default_strategies(vcs: BaseVCSProvider) -> list[tuple[str, UserListing]]:
    return [
        ("contributors", vcs.get_contributors),
        ("collaborators", vcs.get_collaborators),
        ("issue_authors", vcs.get_issue_authors),
    ]


async def discover_users(
    strategies: list[tuple[str, UserListing]], owner: str, repo: str
) -> tuple[str | None, list[RemoteUser] | None]:
    """
    Try listing strategies in order.

    An unavailable listing (None) or an empty one moves on to the next.

    Returns:
        (strategy name, users) of the first non-empty listing; when every
        listing is empty, the name of the last one that answered with [];
        (None, None) when no listing was available at all.

    Raises:
        GitHubError: For failures other than "not available to you".
    """
    answered = None
    for name, listing in strategies:
        users = await listing(owner, repo)
        if users is None:
            console.print(f"[dim]{name} listing is not available, trying the next one[/dim]")
            continue
        if users:
            return name, users
        answered = name
    if answered is None:
        return None, None
    return answered, []


class RegisterCollaborators:
    """Registers GitHub users of a repository as collaborators."""

    def __init__(
        self,
        session: Session,
        vcs: BaseVCSProvider,
        strategies: list[tuple[str, UserListing]] | None = None,
    ):
        self.repositories = RepositoryStore(session)
        self.collaborators = CollaboratorStore(session)
        self.strategies = strategies or default_strategies(vcs)

    async def execute(
        self, repository_id: int, selected_users: list[str] | None = None
    ) -> CollaboratorsResult:
        """
        Register collaborators.

        Args:
            repository_id: Local repository id
            selected_users: When given, only these logins are inserted

        Returns:
            CollaboratorsResult whose collaborators are all registered ones:
            previously existing plus newly inserted.
        """
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return CollaboratorsResult(False, failure=not_found("Repository not found"))

        try:
            source, users = await discover_users(
                self.strategies, repository.owner_name, repository.repo_name
            )
        except GitHubError as e:
            console.print(f"[red]Error listing users of {repository.full_name}: {e}[/red]")
            return CollaboratorsResult(
                False, failure=upstream_failed(f"GitHub fetch failed: {e}", e.retryable)
            )
        if users is None:
            return CollaboratorsResult(
                False,
                failure=upstream_failed(
                    f"No user listing of {repository.full_name} is available to this token",
                    retryable=False,
                ),
            )

        existing = self.collaborators.find_by_repository_id(repository_id)
        existing_logins = {c.github_user_name for c in existing}
        allowed = set(selected_users) if selected_users else None

        new_users = {}
        for user in users:
            if user.login in existing_logins or user.login in new_users:
                continue
            if allowed is not None and user.login not in allowed:
                continue
            new_users[user.login] = user.name or user.login

        try:
            created = self.collaborators.create_many(repository_id, list(new_users.items()))
        except SQLAlchemyError as e:
            return CollaboratorsResult(
                False, failure=storage_failed(f"Failed to store collaborators: {e}")
            )

        if created:
            console.print(
                f"Registered {len(created)} collaborator(s) for "
                f"[bold cyan]{repository.full_name}[/bold cyan] from {source}"
            )
        return CollaboratorsResult(
            True,
            collaborators=existing + created,
            created_count=len(created),
            source=source,
        )
