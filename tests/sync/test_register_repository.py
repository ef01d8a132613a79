"""
Tests for repository registration and sprint settings.
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from team_pulse.results import FailureKind
from team_pulse.storage.stores import IssueStore
from team_pulse.sync import (
    RecalculateSprintNumbers,
    RegisterRepository,
    UpdateSprintSettings,
    github_provider_for,
)
from team_pulse.sync.repositories import validate_sprint_settings
from team_pulse.errors import ValidationError
from team_pulse.token_cipher import decrypt_token, generate_key


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def secret_key(monkeypatch):
    key = generate_key()
    monkeypatch.setenv("TEAM_PULSE_SECRET_KEY", key)
    return key


def _seed_issue(session, repository_id, number, created_at, sprint_number=1):
    IssueStore(session).upsert_many(
        [
            {
                "repository_id": repository_id,
                "github_number": number,
                "title": "t",
                "body": None,
                "state": "open",
                "author_collaborator_id": None,
                "assignee_collaborator_id": None,
                "sprint_number": sprint_number,
                "github_created_at": created_at,
                "github_closed_at": None,
            }
        ]
    )


class TestValidateSprintSettings:
    @pytest.mark.parametrize("day,weeks", [(-1, 1), (7, 1), (3, 3), (3, 0), (True, 1)])
    def test_rejects(self, day, weeks):
        with pytest.raises(ValidationError):
            validate_sprint_settings(day, weeks)

    @pytest.mark.parametrize("day,weeks", [(0, 1), (6, 2)])
    def test_accepts(self, day, weeks):
        validate_sprint_settings(day, weeks)


class TestRegisterRepository:
    def test_registers_with_defaults(self, session):
        result = RegisterRepository(session).execute("acme", "widgets")

        assert result.success
        repository = result.repository
        assert repository.full_name == "acme/widgets"
        assert repository.sprint_start_day_of_week == 6
        assert repository.sprint_duration_weeks == 1
        assert repository.tracking_start_date == date.today()
        assert repository.token_encrypted is None

    def test_rejects_blank_names(self, session):
        result = RegisterRepository(session).execute(" ", "widgets")
        assert result.failure.kind == FailureKind.VALIDATION

    def test_rejects_invalid_sprint_settings(self, session):
        result = RegisterRepository(session).execute("acme", "widgets", sprint_duration_weeks=3)
        assert result.failure.kind == FailureKind.VALIDATION

    def test_rejects_duplicates(self, session, repository):
        result = RegisterRepository(session).execute("acme", "widgets")
        assert result.failure.kind == FailureKind.VALIDATION
        assert "already registered" in result.failure.message

    def test_token_is_stored_encrypted(self, session, secret_key):
        result = RegisterRepository(session).execute("acme", "widgets", token="ghp_secret")

        stored = result.repository.token_encrypted
        assert stored != "ghp_secret"
        assert decrypt_token(stored) == "ghp_secret"
        assert github_provider_for(result.repository).token == "ghp_secret"

    def test_token_without_key_is_rejected(self, session, monkeypatch):
        monkeypatch.delenv("TEAM_PULSE_SECRET_KEY", raising=False)

        result = RegisterRepository(session).execute("acme", "widgets", token="ghp_secret")

        assert result.failure.kind == FailureKind.VALIDATION
        assert "TEAM_PULSE_SECRET_KEY" in result.failure.message


class TestSprintSettings:
    def test_recalculate_counts_changed_issues(self, session, repository):
        _seed_issue(session, repository.id, 1, utc(2024, 1, 8), sprint_number=1)
        _seed_issue(session, repository.id, 2, utc(2024, 1, 22), sprint_number=1)

        result = RecalculateSprintNumbers(session).execute(repository.id)

        assert result.success
        assert result.synced_count == 1
        numbers = {i.github_number: i.sprint_number for i in IssueStore(session).find_by_repository_id(repository.id)}
        assert numbers == {1: 1, 2: 3}

    def test_update_settings_rebuckets(self, session, repository):
        _seed_issue(session, repository.id, 1, utc(2024, 1, 22), sprint_number=3)

        result = UpdateSprintSettings(session).execute(repository.id, sprint_duration_weeks=2)

        assert result.success
        assert result.repository.sprint_duration_weeks == 2
        assert IssueStore(session).find_by_repository_id(repository.id)[0].sprint_number == 2

    def test_update_rejects_invalid_day(self, session, repository):
        result = UpdateSprintSettings(session).execute(repository.id, sprint_start_day_of_week=9)
        assert result.failure.kind == FailureKind.VALIDATION

    def test_update_unknown_repository(self, session):
        result = UpdateSprintSettings(session).execute(42, sprint_duration_weeks=2)
        assert result.failure.kind == FailureKind.NOT_FOUND

    def test_update_storage_failure(self, session, repository, monkeypatch):
        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "commit", failing_commit)

        result = UpdateSprintSettings(session).execute(repository.id, sprint_duration_weeks=2)

        assert not result.success
        assert result.failure.kind == FailureKind.STORAGE
        monkeypatch.undo()
        session.expire_all()
        assert session.get(type(repository), repository.id).sprint_duration_weeks == 1
