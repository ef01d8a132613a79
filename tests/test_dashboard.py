"""
Tests for sprint info and the sprint dashboard.
"""

from datetime import datetime, timezone

from team_pulse.dashboard import (
    DimensionSummary,
    GetCurrentSprint,
    GetSprintDashboard,
    summarize_speed,
)
from team_pulse.results import FailureKind
from team_pulse.storage.stores import CollaboratorStore, EvaluationStore, IssueStore


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _row(repository_id, number, author_id, created_at, closed_at=None, sprint_number=1):
    return {
        "repository_id": repository_id,
        "github_number": number,
        "title": f"Issue {number}",
        "body": None,
        "state": "closed" if closed_at else "open",
        "author_collaborator_id": author_id,
        "assignee_collaborator_id": None,
        "sprint_number": sprint_number,
        "github_created_at": created_at,
        "github_closed_at": closed_at,
    }


class TestGetCurrentSprint:
    def test_current_sprint(self, session, repository):
        result = GetCurrentSprint(session).execute(repository.id, now=utc(2024, 1, 10))

        assert result.success
        assert result.info.to_dict() == {
            "number": 1,
            "start_date": "2024-01-06",
            "end_date": "2024-01-12",
            "period": "1/6(Sat) - 1/12(Fri)",
            "start_day_name": "Sat",
            "duration_weeks": 1,
            "is_current": True,
            "offset": 0,
        }

    def test_previous_sprint(self, session, repository):
        result = GetCurrentSprint(session).execute(repository.id, offset=-1, now=utc(2024, 1, 17))

        assert result.info.sprint.number.value == 1
        assert result.info.sprint.is_current is False

    def test_unknown_repository(self, session):
        result = GetCurrentSprint(session).execute(7)
        assert result.failure.kind == FailureKind.NOT_FOUND


class TestGetSprintDashboard:
    def test_dashboard(self, session, repository):
        alice, bob = CollaboratorStore(session).create_many(
            repository.id, [("alice", "Alice"), ("bob", "Bob")]
        )
        IssueStore(session).upsert_many(
            [
                _row(repository.id, 1, alice.id, utc(2024, 1, 8), utc(2024, 1, 9)),
                _row(repository.id, 2, bob.id, utc(2024, 1, 8)),
                _row(repository.id, 3, None, utc(2024, 1, 9)),
                _row(repository.id, 4, alice.id, utc(2024, 1, 15), sprint_number=2),
            ]
        )
        issues = {i.github_number: i for i in IssueStore(session).find_by_repository_id(repository.id)}
        evaluations = EvaluationStore(session)
        evaluations.save_speed(issues[1].id, 120, "S")
        evaluations.save_quality(issues[1].id, 78, "B", {})
        evaluations.save_quality(issues[2].id, 90, "A", {})
        evaluations.save_quality(issues[4].id, 10, "E", {})

        result = GetSprintDashboard(session).execute(repository.id, now=utc(2024, 1, 10))

        assert result.success
        data = result.data
        assert (data.total_issues, data.closed_issues, data.open_issues) == (3, 1, 2)
        users = {u.username: u for u in data.users}
        assert (users["alice"].total_issues, users["alice"].closed_issues) == (1, 1)
        assert users["alice"].issue_numbers == [1]
        assert (users["bob"].total_issues, users["bob"].open_issues) == (1, 1)
        assert data.speed == DimensionSummary(1, 120, "S")
        assert data.quality == DimensionSummary(2, 84, "A")
        assert data.consistency == DimensionSummary(0)
        assert data.lead_time.grade == "A"
        assert data.lead_time.lead_time_days == 1

    def test_empty_sprint(self, session, repository):
        result = GetSprintDashboard(session).execute(repository.id, now=utc(2024, 1, 10))

        assert result.success
        assert result.data.total_issues == 0
        assert result.data.quality == DimensionSummary(0)
        assert result.data.lead_time is None

    def test_unknown_repository(self, session):
        result = GetSprintDashboard(session).execute(9)
        assert result.failure.kind == FailureKind.NOT_FOUND


def test_speed_average_stays_on_open_scale():
    assert summarize_speed([120, 100]) == DimensionSummary(2, 110, "S")
    assert summarize_speed([]) == DimensionSummary(0)
