"""SQLAlchemy models for synchronized GitHub data and evaluations."""

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Repository(Base):
    """A tracked GitHub repository and its sprint settings."""

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("owner_name", "repo_name", name="repositories_owner_repo_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_name: Mapped[str] = mapped_column(String(255), nullable=False)
    repo_name: Mapped[str] = mapped_column(String(255), nullable=False)
    token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    tracking_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    sprint_start_day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    sprint_duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    collaborators = relationship(
        "Collaborator", back_populates="repository", cascade="all, delete-orphan"
    )
    issues = relationship("Issue", back_populates="repository", cascade="all, delete-orphan")
    pull_requests = relationship(
        "PullRequest", back_populates="repository", cascade="all, delete-orphan"
    )
    sync_metadata = relationship(
        "SyncMetadata",
        back_populates="repository",
        cascade="all, delete-orphan",
        uselist=False,
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner_name}/{self.repo_name}"

    def __repr__(self) -> str:
        return f"<Repository {self.full_name}>"


class Collaborator(Base):
    """A GitHub user registered for one repository."""

    __tablename__ = "collaborators"
    __table_args__ = (
        UniqueConstraint(
            "repository_id", "github_user_name", name="collaborators_repo_github_user_unique"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    github_user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    repository = relationship("Repository", back_populates="collaborators")

    def __repr__(self) -> str:
        return f"<Collaborator {self.github_user_name}>"


class Issue(Base):
    __tablename__ = "issues"
    __table_args__ = (
        UniqueConstraint(
            "repository_id", "github_number", name="issues_repo_github_number_unique"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    github_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(20), nullable=False)  # open, closed
    author_collaborator_id: Mapped[int | None] = mapped_column(
        ForeignKey("collaborators.id", ondelete="SET NULL"), nullable=True
    )
    assignee_collaborator_id: Mapped[int | None] = mapped_column(
        ForeignKey("collaborators.id", ondelete="SET NULL"), nullable=True
    )
    sprint_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    github_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    github_closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    repository = relationship("Repository", back_populates="issues")
    author = relationship("Collaborator", foreign_keys=[author_collaborator_id])
    assignee = relationship("Collaborator", foreign_keys=[assignee_collaborator_id])
    evaluation = relationship(
        "Evaluation", back_populates="issue", cascade="all, delete-orphan", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Issue #{self.github_number} {self.state}>"


class PullRequest(Base):
    __tablename__ = "pull_requests"
    __table_args__ = (
        UniqueConstraint(
            "repository_id", "github_number", name="pull_requests_repo_github_number_unique"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    # Set by the linking step, never by the upsert
    issue_id: Mapped[int | None] = mapped_column(
        ForeignKey("issues.id", ondelete="SET NULL"), nullable=True
    )
    github_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    author_collaborator_id: Mapped[int | None] = mapped_column(
        ForeignKey("collaborators.id", ondelete="SET NULL"), nullable=True
    )
    github_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    github_merged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    repository = relationship("Repository", back_populates="pull_requests")
    issue = relationship("Issue")

    def __repr__(self) -> str:
        return f"<PullRequest #{self.github_number} {self.state}>"


class Evaluation(Base):
    """
    Scores of one Issue.

    The speed, quality and consistency slots are independent; each stays
    NULL until computed and is overwritten on re-evaluation.
    """

    __tablename__ = "evaluations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    # Open speed scale (120/100/70/40), graded S-C
    speed_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    speed_grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    speed_calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    quality_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quality_grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    quality_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    quality_calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    consistency_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consistency_grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    consistency_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    consistency_calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    issue = relationship("Issue", back_populates="evaluation")


class SyncMetadata(Base):
    """Watermark of the last successful sync of a repository."""

    __tablename__ = "sync_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    last_sync_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    repository = relationship("Repository", back_populates="sync_metadata")
