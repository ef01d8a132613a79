"""
Data access for the synchronized records.

Issues and Pull Requests are written with dialect-level upserts keyed by
(repository_id, github_number), so repeating a sync never duplicates rows.
"""

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.storage.models import (
    Collaborator,
    Evaluation,
    Issue,
    PullRequest,
    Repository,
    SyncMetadata,
    utcnow,
)

ISSUE_UPDATE_COLUMNS = (
    "title",
    "body",
    "state",
    "author_collaborator_id",
    "assignee_collaborator_id",
    "sprint_number",
    "github_closed_at",
)

# issue_id is owned by the linking step and survives re-syncs
PULL_REQUEST_UPDATE_COLUMNS = (
    "title",
    "state",
    "author_collaborator_id",
    "github_merged_at",
)

EVALUATION_SLOTS = ("speed", "quality", "consistency")


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the zone) or convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _insert_for(session: Session, model):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported on {dialect}")


def _upsert(session: Session, model, rows: list[dict[str, Any]], columns) -> int:
    """Insert rows, overwriting `columns` and updated_at on (repository_id, github_number) conflicts."""
    if not rows:
        return 0
    now = utcnow()
    values = [dict(row, created_at=now, updated_at=now) for row in rows]
    stmt = _insert_for(session, model).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["repository_id", "github_number"],
        set_={**{column: stmt.excluded[column] for column in columns}, "updated_at": now},
    )
    try:
        session.execute(stmt)
        session.commit()
        # Rows already loaded in this session are stale after a Core-level write
        session.expire_all()
    except SQLAlchemyError:
        session.rollback()
        raise
    return len(rows)


class RepositoryStore:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, repository_id: int) -> Repository | None:
        return self.session.get(Repository, repository_id)

    def find_by_owner_and_name(self, owner: str, name: str) -> Repository | None:
        return self.session.scalars(
            select(Repository).where(
                Repository.owner_name == owner, Repository.repo_name == name
            )
        ).first()

    def find_all(self) -> list[Repository]:
        return list(self.session.scalars(select(Repository).order_by(Repository.id)))

    def create(
        self,
        owner: str,
        name: str,
        tracking_start_date: date,
        sprint_start_day_of_week: int,
        sprint_duration_weeks: int,
        token_encrypted: str | None = None,
    ) -> Repository:
        repository = Repository(
            owner_name=owner,
            repo_name=name,
            token_encrypted=token_encrypted,
            tracking_start_date=tracking_start_date,
            sprint_start_day_of_week=sprint_start_day_of_week,
            sprint_duration_weeks=sprint_duration_weeks,
        )
        self.session.add(repository)
        self.session.commit()
        return repository

    def save(self, repository: Repository) -> Repository:
        self.session.add(repository)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return repository

    def delete(self, repository: Repository) -> None:
        """Delete a repository together with all of its child rows."""
        self.session.delete(repository)
        self.session.commit()


class CollaboratorStore:
    def __init__(self, session: Session):
        self.session = session

    def find_by_repository_id(self, repository_id: int) -> list[Collaborator]:
        return list(
            self.session.scalars(
                select(Collaborator)
                .where(Collaborator.repository_id == repository_id)
                .order_by(Collaborator.id)
            )
        )

    def find_by_id(self, collaborator_id: int) -> Collaborator | None:
        return self.session.get(Collaborator, collaborator_id)

    def create_many(
        self, repository_id: int, users: list[tuple[str, str | None]]
    ) -> list[Collaborator]:
        """Insert (github_user_name, display_name) pairs in one transaction."""
        collaborators = [
            Collaborator(
                repository_id=repository_id,
                github_user_name=login,
                display_name=display_name,
            )
            for login, display_name in users
        ]
        if not collaborators:
            return []
        try:
            self.session.add_all(collaborators)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return collaborators

    def login_map(self, repository_id: int) -> dict[str, int]:
        """Collaborator ids keyed by exact GitHub user name."""
        return {
            c.github_user_name: c.id for c in self.find_by_repository_id(repository_id)
        }


class IssueStore:
    def __init__(self, session: Session):
        self.session = session

    def upsert_many(self, rows: list[dict[str, Any]]) -> int:
        """
        Insert or update Issues in one statement.

        Raises:
            SQLAlchemyError: If the write fails; nothing is persisted.
        """
        return _upsert(self.session, Issue, rows, ISSUE_UPDATE_COLUMNS)

    def find_by_id(self, issue_id: int) -> Issue | None:
        return self.session.get(Issue, issue_id)

    def find_by_repository_id(self, repository_id: int) -> list[Issue]:
        return list(
            self.session.scalars(
                select(Issue)
                .where(Issue.repository_id == repository_id)
                .order_by(Issue.github_number)
            )
        )

    def find_by_numbers(self, repository_id: int, numbers: list[int]) -> list[Issue]:
        if not numbers:
            return []
        return list(
            self.session.scalars(
                select(Issue).where(
                    Issue.repository_id == repository_id,
                    Issue.github_number.in_(numbers),
                )
            )
        )

    def find_by_sprint_number(self, repository_id: int, sprint_number: int) -> list[Issue]:
        return list(
            self.session.scalars(
                select(Issue)
                .where(
                    Issue.repository_id == repository_id,
                    Issue.sprint_number == sprint_number,
                )
                .order_by(Issue.github_number)
            )
        )

    def update_sprint_numbers(self, sprint_numbers: dict[int, int]) -> int:
        """Set sprint numbers keyed by issue id; returns how many changed."""
        changed = 0
        for issue_id, sprint_number in sprint_numbers.items():
            issue = self.session.get(Issue, issue_id)
            if issue is not None and issue.sprint_number != sprint_number:
                issue.sprint_number = sprint_number
                changed += 1
        self.session.commit()
        return changed


class PullRequestStore:
    def __init__(self, session: Session):
        self.session = session

    def upsert_many(self, rows: list[dict[str, Any]]) -> int:
        return _upsert(self.session, PullRequest, rows, PULL_REQUEST_UPDATE_COLUMNS)

    def find_by_repository_id(self, repository_id: int) -> list[PullRequest]:
        return list(
            self.session.scalars(
                select(PullRequest)
                .where(PullRequest.repository_id == repository_id)
                .order_by(PullRequest.github_number)
            )
        )

    def find_by_numbers(self, repository_id: int, numbers: list[int]) -> list[PullRequest]:
        if not numbers:
            return []
        return list(
            self.session.scalars(
                select(PullRequest).where(
                    PullRequest.repository_id == repository_id,
                    PullRequest.github_number.in_(numbers),
                )
            )
        )

    def find_by_issue_id(self, issue_id: int) -> list[PullRequest]:
        return list(
            self.session.scalars(
                select(PullRequest)
                .where(PullRequest.issue_id == issue_id)
                .order_by(PullRequest.github_number)
            )
        )

    def link_to_issues(self, links: dict[int, int]) -> None:
        """Set issue_id on Pull Requests, keyed by pull request id."""
        for pull_request_id, issue_id in links.items():
            pull_request = self.session.get(PullRequest, pull_request_id)
            if pull_request is not None:
                pull_request.issue_id = issue_id
        self.session.commit()


class EvaluationStore:
    def __init__(self, session: Session):
        self.session = session

    def find_by_issue_id(self, issue_id: int) -> Evaluation | None:
        return self.session.scalars(
            select(Evaluation).where(Evaluation.issue_id == issue_id)
        ).first()

    def _get_or_create(self, issue_id: int) -> Evaluation:
        evaluation = self.find_by_issue_id(issue_id)
        if evaluation is None:
            evaluation = Evaluation(issue_id=issue_id)
            self.session.add(evaluation)
        return evaluation

    def _save_slot(
        self,
        issue_id: int,
        slot: str,
        score: int,
        grade: str,
        details: dict[str, Any] | None = None,
        calculated_at: datetime | None = None,
    ) -> Evaluation:
        # Last write wins; there is no version check
        evaluation = self._get_or_create(issue_id)
        setattr(evaluation, f"{slot}_score", score)
        setattr(evaluation, f"{slot}_grade", grade)
        setattr(evaluation, f"{slot}_calculated_at", calculated_at or utcnow())
        if slot != "speed":
            setattr(evaluation, f"{slot}_details", details)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return evaluation

    def save_speed(self, issue_id: int, score: int, grade: str, calculated_at=None) -> Evaluation:
        return self._save_slot(issue_id, "speed", score, grade, None, calculated_at)

    def save_quality(
        self, issue_id: int, score: int, grade: str, details: dict[str, Any], calculated_at=None
    ) -> Evaluation:
        return self._save_slot(issue_id, "quality", score, grade, details, calculated_at)

    def save_consistency(
        self, issue_id: int, score: int, grade: str, details: dict[str, Any], calculated_at=None
    ) -> Evaluation:
        return self._save_slot(issue_id, "consistency", score, grade, details, calculated_at)

    def find_issues_missing(
        self, repository_id: int, slot: str, closed_only: bool = False
    ) -> list[Issue]:
        """
        Issues of a repository whose `slot` score has not been computed yet.

        Args:
            repository_id: Repository to search
            slot: "speed", "quality" or "consistency"
            closed_only: Restrict to closed Issues
        """
        if slot not in EVALUATION_SLOTS:
            raise ValueError(f"Unknown evaluation slot: {slot}")
        score_column = getattr(Evaluation, f"{slot}_score")
        stmt = (
            select(Issue)
            .outerjoin(Evaluation, Evaluation.issue_id == Issue.id)
            .where(Issue.repository_id == repository_id, score_column.is_(None))
            .order_by(Issue.github_number)
        )
        if closed_only:
            stmt = stmt.where(Issue.state == "closed")
        return list(self.session.scalars(stmt))

    def find_by_issue_ids(self, issue_ids: list[int]) -> dict[int, Evaluation]:
        if not issue_ids:
            return {}
        return {
            evaluation.issue_id: evaluation
            for evaluation in self.session.scalars(
                select(Evaluation).where(Evaluation.issue_id.in_(issue_ids))
            )
        }


class SyncMetadataStore:
    def __init__(self, session: Session):
        self.session = session

    def get_last_sync_at(self, repository_id: int) -> datetime | None:
        metadata = self.session.scalars(
            select(SyncMetadata).where(SyncMetadata.repository_id == repository_id)
        ).first()
        return as_utc(metadata.last_sync_at) if metadata else None

    def advance(self, repository_id: int, synced_at: datetime) -> None:
        """Record a successful sync. Callers only call this after the upserts committed."""
        metadata = self.session.scalars(
            select(SyncMetadata).where(SyncMetadata.repository_id == repository_id)
        ).first()
        if metadata is None:
            metadata = SyncMetadata(repository_id=repository_id, last_sync_at=synced_at)
            self.session.add(metadata)
        else:
            metadata.last_sync_at = synced_at
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
