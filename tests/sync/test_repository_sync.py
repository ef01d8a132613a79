"""
Tests for full repository synchronization and the sync watermark.
"""

import asyncio
from datetime import datetime, timezone

from sqlalchemy.exc import OperationalError

from team_pulse.errors import GitHubError
from team_pulse.results import FailureKind
from team_pulse.storage.stores import IssueStore, PullRequestStore, SyncMetadataStore
from team_pulse.sync import SyncRepository


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _sync(session, provider, repository_id, **kwargs):
    return asyncio.run(SyncRepository(session, provider).execute(repository_id, **kwargs))


def test_success_advances_watermark_and_links(
    session, repository, provider, remote_issue, remote_pull
):
    provider.issues = [remote_issue(1)]
    provider.pulls = [remote_pull(10)]
    provider.closing_issues = {10: [1]}
    before = datetime.now(timezone.utc)

    report = _sync(session, provider, repository.id)

    assert report.success
    assert report.watermark_advanced
    assert report.links.linked == 1
    watermark = SyncMetadataStore(session).get_last_sync_at(repository.id)
    assert watermark >= before.replace(microsecond=0)


def test_uses_stored_watermark(session, repository, provider):
    SyncMetadataStore(session).advance(repository.id, utc(2024, 1, 10))

    _sync(session, provider, repository.id)

    assert ("issues", utc(2024, 1, 10)) in provider.calls
    assert ("pulls", utc(2024, 1, 10)) in provider.calls


def test_full_ignores_watermark(session, repository, provider):
    SyncMetadataStore(session).advance(repository.id, utc(2024, 1, 10))

    _sync(session, provider, repository.id, full=True)

    assert ("issues", None) in provider.calls


def test_issue_failure_keeps_pull_requests_and_watermark(
    session, repository, provider, remote_pull
):
    SyncMetadataStore(session).advance(repository.id, utc(2024, 1, 1))
    provider.issues_error = GitHubError("GitHub API error 503: down", status_code=503)
    provider.pulls = [remote_pull(10, created_at=utc(2024, 1, 5))]

    report = _sync(session, provider, repository.id)

    assert not report.success
    assert not report.watermark_advanced
    assert report.issues.failure.kind == FailureKind.UPSTREAM
    assert report.pull_requests.success
    assert len(PullRequestStore(session).find_by_repository_id(repository.id)) == 1
    assert SyncMetadataStore(session).get_last_sync_at(repository.id) == utc(2024, 1, 1)


def test_pull_request_failure_keeps_issues(session, repository, provider, remote_issue):
    provider.issues = [remote_issue(1)]
    provider.pulls_error = GitHubError("GitHub API error 500: oops", status_code=500)

    report = _sync(session, provider, repository.id)

    assert report.issues.success
    assert not report.pull_requests.success
    assert report.links is None
    assert not report.watermark_advanced
    assert len(IssueStore(session).find_by_repository_id(repository.id)) == 1
    assert SyncMetadataStore(session).get_last_sync_at(repository.id) is None


def test_no_link(session, repository, provider, remote_pull):
    provider.pulls = [remote_pull(10)]

    report = _sync(session, provider, repository.id, link=False)

    assert report.links is None
    assert report.watermark_advanced


def test_unknown_repository(session, provider):
    report = _sync(session, provider, 999)
    assert not report.success
    assert report.failure.kind == FailureKind.NOT_FOUND


def _failing_commit():
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


def test_watermark_write_failure_is_a_storage_failure(
    session, repository, provider, monkeypatch
):
    monkeypatch.setattr(session, "commit", _failing_commit)

    report = _sync(session, provider, repository.id)

    assert not report.success
    assert not report.watermark_advanced
    assert report.failure.kind == FailureKind.STORAGE
    assert report.issues.success and report.pull_requests.success
    monkeypatch.undo()
    assert SyncMetadataStore(session).get_last_sync_at(repository.id) is None
