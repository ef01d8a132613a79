"""
Sprint dashboard: sprint info, per-collaborator totals and a team-health
summary over the evaluated Issues of a sprint.
"""

from datetime import datetime, timezone
from typing import Any, NamedTuple

from sqlalchemy.orm import Session

from team_pulse.errors import ValidationError
from team_pulse.results import Failure, not_found, validation_failed
from team_pulse.scoring.base import CONSISTENCY_GRADES, QUALITY_GRADES, Score, grade_for_score
from team_pulse.scoring.speed import LeadTimeResult, lead_time_from_hours, speed_grade_for_score
from team_pulse.sprint import DAY_NAMES, Sprint, calculator_for_repository
from team_pulse.storage.models import Issue, Repository
from team_pulse.storage.stores import (
    CollaboratorStore,
    EvaluationStore,
    IssueStore,
    RepositoryStore,
    as_utc,
)


class DimensionSummary(NamedTuple):
    """Average of one score slot over the evaluated Issues of a sprint."""

    evaluated: int
    average_score: int | None = None
    grade: str | None = None


class CollaboratorStats(NamedTuple):
    collaborator_id: int
    username: str
    total_issues: int
    closed_issues: int
    open_issues: int
    issue_numbers: list[int]


class SprintInfo(NamedTuple):
    sprint: Sprint
    start_day_name: str
    duration_weeks: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.sprint.number.value,
            **self.sprint.period.to_dict(),
            "period": self.sprint.period.format(),
            "start_day_name": self.start_day_name,
            "duration_weeks": self.duration_weeks,
            "is_current": self.sprint.is_current,
            "offset": self.sprint.offset,
        }


class SprintInfoResult(NamedTuple):
    success: bool
    info: SprintInfo | None = None
    failure: Failure | None = None


class DashboardData(NamedTuple):
    repository: Repository
    sprint: SprintInfo
    total_issues: int
    closed_issues: int
    open_issues: int
    users: list[CollaboratorStats]
    speed: DimensionSummary
    quality: DimensionSummary
    consistency: DimensionSummary
    lead_time: LeadTimeResult | None = None  # Day-based 0-100 scale, closed Issues only


class DashboardResult(NamedTuple):
    success: bool
    data: DashboardData | None = None
    failure: Failure | None = None


def _sprint_info(repository: Repository, offset: int, now: datetime) -> SprintInfo:
    calculator = calculator_for_repository(repository)
    return SprintInfo(
        calculator.sprint_with_offset(now, offset),
        DAY_NAMES[calculator.config.start_day_of_week],
        calculator.config.duration_weeks,
    )


def summarize(scores: list[int], grader) -> DimensionSummary:
    if not scores:
        return DimensionSummary(0)
    average = Score.average([Score.create(score) for score in scores]).value
    return DimensionSummary(len(scores), average, grader(average))


def summarize_speed(scores: list[int]) -> DimensionSummary:
    """Speed averages stay on the open speed scale (up to 120)."""
    if not scores:
        return DimensionSummary(0)
    average = int(sum(scores) / len(scores) + 0.5)
    return DimensionSummary(len(scores), average, speed_grade_for_score(average))


def average_lead_time(issues: list[Issue]) -> LeadTimeResult | None:
    """Lead-time grade of the mean creation-to-close time of closed Issues."""
    hours = [
        (as_utc(i.github_closed_at) - as_utc(i.github_created_at)).total_seconds() / 3600
        for i in issues
        if i.state == "closed" and i.github_closed_at is not None
    ]
    hours = [h for h in hours if h >= 0]
    if not hours:
        return None
    return lead_time_from_hours(sum(hours) / len(hours))


class GetCurrentSprint:
    def __init__(self, session: Session):
        self.repositories = RepositoryStore(session)

    def execute(
        self, repository_id: int, offset: int = 0, now: datetime | None = None
    ) -> SprintInfoResult:
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return SprintInfoResult(False, failure=not_found("Repository not found"))
        try:
            info = _sprint_info(repository, offset, now or datetime.now(timezone.utc))
        except ValidationError as e:
            return SprintInfoResult(False, failure=validation_failed(str(e)))
        return SprintInfoResult(True, info)


class GetSprintDashboard:
    def __init__(self, session: Session):
        self.repositories = RepositoryStore(session)
        self.issues = IssueStore(session)
        self.collaborators = CollaboratorStore(session)
        self.evaluations = EvaluationStore(session)

    def execute(
        self, repository_id: int, offset: int = 0, now: datetime | None = None
    ) -> DashboardResult:
        """
        Dashboard of the sprint `offset` sprints away from the current one.

        Issues count toward their author; Issues by unregistered users only
        count in the totals.
        """
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            return DashboardResult(False, failure=not_found("Repository not found"))
        try:
            info = _sprint_info(repository, offset, now or datetime.now(timezone.utc))
        except ValidationError as e:
            return DashboardResult(False, failure=validation_failed(str(e)))

        issues = self.issues.find_by_sprint_number(repository_id, info.sprint.number.value)
        users = self._collaborator_stats(repository_id, issues)
        closed = sum(1 for issue in issues if issue.state == "closed")

        evaluations = self.evaluations.find_by_issue_ids([issue.id for issue in issues])
        speed = [e.speed_score for e in evaluations.values() if e.speed_score is not None]
        quality = [e.quality_score for e in evaluations.values() if e.quality_score is not None]
        consistency = [
            e.consistency_score for e in evaluations.values() if e.consistency_score is not None
        ]

        return DashboardResult(
            True,
            DashboardData(
                repository=repository,
                sprint=info,
                total_issues=len(issues),
                closed_issues=closed,
                open_issues=len(issues) - closed,
                users=users,
                speed=summarize_speed(speed),
                quality=summarize(
                    quality, lambda score: grade_for_score(score, QUALITY_GRADES).grade
                ),
                consistency=summarize(
                    consistency, lambda score: grade_for_score(score, CONSISTENCY_GRADES).grade
                ),
                lead_time=average_lead_time(issues),
            ),
        )

    def _collaborator_stats(
        self, repository_id: int, issues: list[Issue]
    ) -> list[CollaboratorStats]:
        stats = {}
        for collaborator in self.collaborators.find_by_repository_id(repository_id):
            mine = [i for i in issues if i.author_collaborator_id == collaborator.id]
            closed = sum(1 for i in mine if i.state == "closed")
            stats[collaborator.id] = CollaboratorStats(
                collaborator.id,
                collaborator.github_user_name,
                len(mine),
                closed,
                len(mine) - closed,
                [i.github_number for i in mine],
            )
        return list(stats.values())
