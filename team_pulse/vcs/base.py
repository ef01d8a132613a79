"""
Base classes and data structures for source-control providers.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import NamedTuple


class RemoteRepositoryInfo(NamedTuple):
    owner: str
    name: str
    full_name: str
    description: str | None = None
    private: bool = False


class RemoteUser(NamedTuple):
    """A user listed by the host (contributor, collaborator or issue author)."""

    login: str
    name: str | None = None
    avatar_url: str | None = None


class RemoteIssue(NamedTuple):
    """
    An Issue as returned by the host.

    The host's issue listing also returns pull requests; those carry
    is_pull_request=True and are dropped by providers before returning.
    """

    number: int
    title: str
    body: str | None
    state: str  # "open" or "closed"
    author_login: str | None
    assignee_login: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    is_pull_request: bool = False


class RemotePullRequest(NamedTuple):
    number: int
    title: str
    body: str | None
    state: str  # "open" or "closed"
    author_login: str | None
    created_at: datetime
    updated_at: datetime
    merged_at: datetime | None = None


class LinkedPullRequest(NamedTuple):
    """A merged Pull Request with the content the consistency evaluator reads."""

    number: int
    title: str
    url: str
    body: str | None
    diff: str
    changed_files: list[str]
    additions: int
    deletions: int
    merged_at: datetime | None


class BaseVCSProvider(ABC):
    """
    Abstract source-control client.

    Listing strategies used for collaborator discovery (get_contributors,
    get_collaborators, get_issue_authors) return None when the listing is
    unavailable to the caller (missing permission, listing disabled), so a
    caller can move on to the next strategy without exception handling.
    Every method raises GitHubError for transport or HTTP failures.
    """

    @abstractmethod
    def get_platform_name(self) -> str:
        """Return the platform identifier (e.g. 'github')."""

    @abstractmethod
    async def get_repository_info(self, owner: str, repo: str) -> RemoteRepositoryInfo:
        """Fetch basic repository information."""

    @abstractmethod
    async def get_contributors(self, owner: str, repo: str) -> list[RemoteUser] | None:
        """Users who have committed to the repository."""

    @abstractmethod
    async def get_collaborators(self, owner: str, repo: str) -> list[RemoteUser] | None:
        """Users with explicit access to the repository (needs push access)."""

    @abstractmethod
    async def get_issue_authors(self, owner: str, repo: str) -> list[RemoteUser] | None:
        """Distinct authors of the repository's Issues."""

    @abstractmethod
    async def get_issues(
        self, owner: str, repo: str, since: datetime | None = None
    ) -> list[RemoteIssue]:
        """All Issues updated at or after `since` (all Issues when None), PRs excluded."""

    @abstractmethod
    async def get_pull_requests(
        self, owner: str, repo: str, since: datetime | None = None
    ) -> list[RemotePullRequest]:
        """All Pull Requests updated at or after `since` (all when None)."""

    @abstractmethod
    async def get_linked_issues_for_pr(
        self, owner: str, repo: str, pr_number: int
    ) -> list[int]:
        """Numbers of the Issues a Pull Request closes."""

    @abstractmethod
    async def get_pull_request_details(
        self, owner: str, repo: str, pr_number: int
    ) -> LinkedPullRequest | None:
        """Content of a merged Pull Request; None when it is not merged."""
