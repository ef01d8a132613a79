"""
Tests for Pull Request synchronization and linking.
"""

import asyncio
from datetime import datetime, timezone

from team_pulse.errors import GitHubError
from team_pulse.results import FailureKind
from team_pulse.storage.stores import IssueStore, PullRequestStore
from team_pulse.sync import LinkPullRequests, SyncIssues, SyncPullRequests


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _sync_pulls(session, provider, repository_id, since=None):
    return asyncio.run(SyncPullRequests(session, provider).execute(repository_id, since))


def _link(session, provider, repository_id, numbers=None):
    return asyncio.run(
        LinkPullRequests(session, provider, max_concurrency=2).execute(repository_id, numbers)
    )


def test_syncs_pull_requests(session, repository, provider, remote_pull):
    provider.pulls = [remote_pull(10, merged_at=utc(2024, 1, 9)), remote_pull(11)]

    result = _sync_pulls(session, provider, repository.id)

    assert result.success
    assert result.synced_count == 2
    pulls = PullRequestStore(session).find_by_repository_id(repository.id)
    assert [(pr.github_number, pr.state) for pr in pulls] == [(10, "closed"), (11, "open")]


def test_since_is_applied_client_side(session, repository, provider, remote_pull):
    provider.pulls = [
        remote_pull(10, created_at=utc(2024, 1, 1)),
        remote_pull(11, created_at=utc(2024, 1, 15)),
    ]

    result = _sync_pulls(session, provider, repository.id, since=utc(2024, 1, 10))

    assert result.numbers == [11]


def test_fetch_failure(session, repository, provider):
    provider.pulls_error = GitHubError("GitHub request timed out")

    result = _sync_pulls(session, provider, repository.id)

    assert result.failure.kind == FailureKind.UPSTREAM
    assert result.failure.retryable is True


def test_links_to_first_local_closing_issue(session, repository, provider, remote_issue, remote_pull):
    provider.issues = [remote_issue(1), remote_issue(2)]
    provider.pulls = [remote_pull(10), remote_pull(11), remote_pull(12)]
    asyncio.run(SyncIssues(session, provider).execute(repository.id))
    _sync_pulls(session, provider, repository.id)
    provider.closing_issues = {10: [99, 2, 1], 11: [], 12: [404]}

    result = _link(session, provider, repository.id)

    assert (result.linked, result.unlinked, result.failed) == (1, 2, 0)
    issue_two = IssueStore(session).find_by_numbers(repository.id, [2])[0]
    linked = PullRequestStore(session).find_by_issue_id(issue_two.id)
    assert [pr.github_number for pr in linked] == [10]


def test_per_pr_lookup_failure_does_not_stop_linking(
    session, repository, provider, remote_issue, remote_pull
):
    provider.issues = [remote_issue(1)]
    provider.pulls = [remote_pull(10), remote_pull(11)]
    asyncio.run(SyncIssues(session, provider).execute(repository.id))
    _sync_pulls(session, provider, repository.id)
    provider.closing_issues = {11: [1]}
    provider.link_errors = {10: GitHubError("GitHub API Errors: [...]")}

    result = _link(session, provider, repository.id)

    assert (result.linked, result.failed) == (1, 1)
    assert result.errors[0].startswith("PR #10")


def test_link_only_given_numbers(session, repository, provider, remote_issue, remote_pull):
    provider.issues = [remote_issue(1)]
    provider.pulls = [remote_pull(10), remote_pull(11)]
    asyncio.run(SyncIssues(session, provider).execute(repository.id))
    _sync_pulls(session, provider, repository.id)
    provider.closing_issues = {10: [1], 11: [1]}

    result = _link(session, provider, repository.id, [11])

    assert result.linked == 1
    pulls = {pr.github_number: pr for pr in PullRequestStore(session).find_by_repository_id(repository.id)}
    assert pulls[10].issue_id is None
    assert pulls[11].issue_id is not None


def test_link_unknown_repository(session, provider):
    result = _link(session, provider, 999)
    assert result.errors == ["Repository not found"]
