"""Resolves the merged Pull Requests linked to an Issue."""

from sqlalchemy.orm import Session

from team_pulse.storage.models import Issue
from team_pulse.storage.stores import PullRequestStore, RepositoryStore
from team_pulse.vcs.base import BaseVCSProvider, LinkedPullRequest


class LinkedPullRequestResolver:
    """
    Linked PRs of an Issue: local PRs linked to it, enriched with their
    remote description, diff and change statistics. Unmerged PRs do not
    count.
    """

    def __init__(self, session: Session, vcs: BaseVCSProvider):
        self.repositories = RepositoryStore(session)
        self.pull_requests = PullRequestStore(session)
        self.vcs = vcs

    async def resolve(self, issue: Issue) -> list[LinkedPullRequest]:
        """
        Raises:
            GitHubError: If fetching a PR's details fails.
        """
        repository = self.repositories.find_by_id(issue.repository_id)
        linked = []
        for pull_request in self.pull_requests.find_by_issue_id(issue.id):
            details = await self.vcs.get_pull_request_details(
                repository.owner_name, repository.repo_name, pull_request.github_number
            )
            if details is not None:
                linked.append(details)
        return linked
