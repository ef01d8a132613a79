"""
Pull Request synchronization and linking to closing Issues.
"""

import asyncio
from datetime import datetime

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.config import get_max_concurrency
from team_pulse.errors import GitHubError
from team_pulse.results import (
    LinkResult,
    SyncResult,
    not_found,
    storage_failed,
    upstream_failed,
)
from team_pulse.storage.stores import (
    CollaboratorStore,
    IssueStore,
    PullRequestStore,
    RepositoryStore,
    as_utc,
)
from team_pulse.vcs.base import BaseVCSProvider

console = Console()


class SyncPullRequests:
    """Pulls Pull Requests of one repository into the local store."""

    def __init__(self, session: Session, vcs: BaseVCSProvider):
        self.repositories = RepositoryStore(session)
        self.collaborators = CollaboratorStore(session)
        self.pull_requests = PullRequestStore(session)
        self.vcs = vcs

    async def execute(self, repository_id: int, since: datetime | None = None) -> SyncResult:
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return SyncResult(False, failure=not_found("Repository not found"))

        try:
            remote_pulls = await self.vcs.get_pull_requests(
                repository.owner_name, repository.repo_name, since
            )
        except GitHubError as e:
            console.print(
                f"[red]Error fetching pull requests of {repository.full_name}: {e}[/red]"
            )
            return SyncResult(
                False, failure=upstream_failed(f"GitHub fetch failed: {e}", e.retryable)
            )

        # Re-filter in case the provider ignored `since`
        if since is not None:
            remote_pulls = [pr for pr in remote_pulls if as_utc(pr.updated_at) >= as_utc(since)]
        if not remote_pulls:
            return SyncResult(True, 0)

        logins = self.collaborators.login_map(repository_id)
        rows = [
            {
                "repository_id": repository_id,
                "github_number": pr.number,
                "title": pr.title,
                "state": pr.state,
                "author_collaborator_id": logins.get(pr.author_login)
                if pr.author_login
                else None,
                "github_created_at": as_utc(pr.created_at),
                "github_merged_at": as_utc(pr.merged_at),
            }
            for pr in remote_pulls
        ]
        try:
            synced = self.pull_requests.upsert_many(rows)
        except SQLAlchemyError as e:
            console.print(
                f"[red]Error storing pull requests of {repository.full_name}: {e}[/red]"
            )
            return SyncResult(False, failure=storage_failed(f"Failed to store pull requests: {e}"))

        return SyncResult(True, synced, numbers=[pr.number for pr in remote_pulls])


class LinkPullRequests:
    """
    Links Pull Requests to the local Issue they close.

    Closing references are looked up per PR through GraphQL with bounded
    fan-out. A PR whose lookup fails is counted and reported; it never fails
    the whole step.
    """

    def __init__(
        self,
        session: Session,
        vcs: BaseVCSProvider,
        max_concurrency: int | None = None,
    ):
        self.repositories = RepositoryStore(session)
        self.issues = IssueStore(session)
        self.pull_requests = PullRequestStore(session)
        self.vcs = vcs
        self.max_concurrency = max_concurrency or get_max_concurrency()

    async def execute(
        self, repository_id: int, pr_numbers: list[int] | None = None
    ) -> LinkResult:
        """
        Link Pull Requests of a repository.

        Args:
            repository_id: Local repository id
            pr_numbers: PRs to link; all stored PRs when None
        """
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return LinkResult(failed=0, errors=["Repository not found"])

        if pr_numbers is None:
            pulls = self.pull_requests.find_by_repository_id(repository_id)
        else:
            pulls = self.pull_requests.find_by_numbers(repository_id, pr_numbers)
        if not pulls:
            return LinkResult()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        owner, repo = repository.owner_name, repository.repo_name

        async def lookup(number: int) -> list[int] | GitHubError:
            async with semaphore:
                try:
                    return await self.vcs.get_linked_issues_for_pr(owner, repo, number)
                except GitHubError as e:
                    return e

        lookups = await asyncio.gather(*(lookup(pr.github_number) for pr in pulls))

        links = {}
        linked = unlinked = failed = 0
        errors = []
        for pr, found in zip(pulls, lookups):
            if isinstance(found, GitHubError):
                failed += 1
                errors.append(f"PR #{pr.github_number}: {found}")
                continue
            issues = {i.github_number: i for i in self.issues.find_by_numbers(repository_id, found)}
            # First closing reference that is synchronized locally
            issue = next((issues[n] for n in found if n in issues), None)
            if issue is None:
                unlinked += 1
                continue
            links[pr.id] = issue.id
            linked += 1

        try:
            self.pull_requests.link_to_issues(links)
        except SQLAlchemyError as e:
            self.repositories.session.rollback()
            return LinkResult(0, unlinked, failed + linked, errors + [f"Failed to store links: {e}"])

        for error in errors:
            console.print(f"[yellow]⚠️  Could not resolve closing issues for {error}[/yellow]")
        return LinkResult(linked, unlinked, failed, errors)
