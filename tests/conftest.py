"""
Shared fixtures: an in-memory database and fakes for GitHub and the AI service.
"""

from datetime import date, datetime, timezone

import pytest

from team_pulse.ai.base import StructuredOutputService, parse_structured_output
from team_pulse.storage import create_db_engine, get_session_factory, init_db
from team_pulse.storage.stores import RepositoryStore
from team_pulse.vcs.base import (
    BaseVCSProvider,
    LinkedPullRequest,
    RemoteIssue,
    RemotePullRequest,
    RemoteRepositoryInfo,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_issue(number, created_at=None, closed_at=None, **kwargs) -> RemoteIssue:
    created_at = created_at or utc(2024, 1, 8)
    defaults = {
        "title": f"Issue {number}",
        "body": "Body",
        "state": "closed" if closed_at else "open",
        "author_login": None,
        "assignee_login": None,
        "created_at": created_at,
        "updated_at": closed_at or created_at,
        "closed_at": closed_at,
    }
    defaults.update(kwargs)
    return RemoteIssue(number=number, **defaults)


def make_pull(number, created_at=None, merged_at=None, **kwargs) -> RemotePullRequest:
    created_at = created_at or utc(2024, 1, 8)
    defaults = {
        "title": f"PR {number}",
        "body": "Closes something",
        "state": "closed" if merged_at else "open",
        "author_login": None,
        "created_at": created_at,
        "updated_at": merged_at or created_at,
        "merged_at": merged_at,
    }
    defaults.update(kwargs)
    return RemotePullRequest(number=number, **defaults)


def make_linked_pr(number, **kwargs) -> LinkedPullRequest:
    defaults = {
        "title": f"PR {number}",
        "url": f"https://github.com/acme/widgets/pull/{number}",
        "body": "Implements the issue",
        "diff": "--- app.py ---\n+print('hi')",
        "changed_files": ["app.py"],
        "additions": 1,
        "deletions": 0,
        "merged_at": utc(2024, 1, 9),
    }
    defaults.update(kwargs)
    return LinkedPullRequest(number=number, **defaults)


class FakeProvider(BaseVCSProvider):
    """In-memory GitHub stand-in; set *_error attributes to make calls fail."""

    def __init__(self):
        self.issues = []
        self.pulls = []
        self.contributors = []
        self.collaborators = []
        self.issue_authors = []
        self.closing_issues = {}
        self.pr_details = {}
        self.issues_error = None
        self.pulls_error = None
        self.link_errors = {}
        self.details_error = None
        self.calls = []

    def get_platform_name(self) -> str:
        return "fake"

    async def get_repository_info(self, owner, repo):
        return RemoteRepositoryInfo(owner, repo, f"{owner}/{repo}")

    async def get_contributors(self, owner, repo):
        self.calls.append("contributors")
        return self.contributors

    async def get_collaborators(self, owner, repo):
        self.calls.append("collaborators")
        return self.collaborators

    async def get_issue_authors(self, owner, repo):
        self.calls.append("issue_authors")
        return self.issue_authors

    async def get_issues(self, owner, repo, since=None):
        self.calls.append(("issues", since))
        if self.issues_error:
            raise self.issues_error
        return [i for i in self.issues if since is None or i.updated_at >= since]

    async def get_pull_requests(self, owner, repo, since=None):
        self.calls.append(("pulls", since))
        if self.pulls_error:
            raise self.pulls_error
        return list(self.pulls)

    async def get_linked_issues_for_pr(self, owner, repo, pr_number):
        if pr_number in self.link_errors:
            raise self.link_errors[pr_number]
        return self.closing_issues.get(pr_number, [])

    async def get_pull_request_details(self, owner, repo, pr_number):
        self.calls.append(("details", pr_number))
        if self.details_error:
            raise self.details_error
        return self.pr_details.get(pr_number)


class FakeAIService(StructuredOutputService):
    """Replies with canned JSON, validated like a real reply."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate_structured_output(self, schema, prompt, temperature=None, max_tokens=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return parse_structured_output(schema, self.reply)


def quality_reply(scores=(20, 18, 25, 15)) -> dict:
    ids = ["context-goal", "implementation-details", "acceptance-criteria", "structure-clarity"]
    return {
        "categories": [
            {"category_id": cid, "score": score, "feedback": f"{cid} feedback"}
            for cid, score in zip(ids, scores)
        ],
        "overall_feedback": "Solid issue.",
        "improvement_suggestions": ["Add edge cases"],
    }


def consistency_reply(scores=(18, 25, 15, 16, 8)) -> dict:
    ids = [
        "issue-evaluability",
        "requirement-coverage",
        "scope-appropriateness",
        "acceptance-criteria-achievement",
        "pr-description-clarity",
    ]
    return {
        "categories": [
            {"category_id": cid, "score": score, "feedback": f"{cid} feedback"}
            for cid, score in zip(ids, scores)
        ],
        "overall_feedback": "Mostly matches.",
        "issue_improvement_suggestions": [],
    }


@pytest.fixture
def session():
    """A session on a fresh in-memory SQLite database."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    with get_session_factory(engine)() as session:
        yield session
    engine.dispose()


@pytest.fixture
def repository(session):
    """A registered repository with Saturday-start weekly sprints from 2024-01-06."""
    return RepositoryStore(session).create(
        "acme",
        "widgets",
        tracking_start_date=date(2024, 1, 6),
        sprint_start_day_of_week=6,
        sprint_duration_weeks=1,
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def remote_issue():
    """Factory for RemoteIssue records."""
    return make_issue


@pytest.fixture
def remote_pull():
    """Factory for RemotePullRequest records."""
    return make_pull


@pytest.fixture
def linked_pr():
    """Factory for LinkedPullRequest records."""
    return make_linked_pr


@pytest.fixture
def ai_service():
    """Factory for FakeAIService(reply=..., error=...)."""
    return FakeAIService


@pytest.fixture
def replies():
    """Canned scoring-service replies: replies.quality(...), replies.consistency(...)."""

    class Replies:
        quality = staticmethod(quality_reply)
        consistency = staticmethod(consistency_reply)

    return Replies
