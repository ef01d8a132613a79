"""
Command-line interface for Team Pulse.
"""

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import Session

from team_pulse.ai.openai_compatible import OpenAICompatibleService
from team_pulse.config import set_database_url, set_max_concurrency, set_verify_ssl
from team_pulse.dashboard import GetCurrentSprint, GetSprintDashboard
from team_pulse.errors import ValidationError
from team_pulse.evaluation import BatchEvaluator, IssueEvaluationService, LinkedPullRequestResolver
from team_pulse.evaluation.batch import DEFAULT_BATCH_LIMIT, MAX_BATCH_LIMIT
from team_pulse.http_client import close_async_http_client
from team_pulse.results import BatchReport, Failure
from team_pulse.storage import get_session_factory, init_db
from team_pulse.storage.models import Repository
from team_pulse.storage.stores import RepositoryStore
from team_pulse.sync import (
    RecalculateSprintNumbers,
    RegisterCollaborators,
    RegisterRepository,
    SyncRepository,
    UpdateSprintSettings,
    github_provider_for,
)
from team_pulse.token_cipher import generate_key

# --- Typer App ---
app = typer.Typer(help="Sync GitHub Issues/PRs and score team health.")
evaluate_app = typer.Typer(help="Evaluate Issues that have no score yet.")
app.add_typer(evaluate_app, name="evaluate")
console = Console()

GRADE_COLORS = {"S": "magenta", "A": "green", "B": "cyan", "C": "yellow", "D": "red", "E": "red"}

# --- Helper Functions ---


def _open_session(database_url: str | None, insecure: bool = False) -> Session:
    if database_url:
        set_database_url(database_url)
    if insecure:
        set_verify_ssl(False)
    return get_session_factory()()


def _resolve_repository(session: Session, repo: str) -> Repository:
    """Look up a repository by id or by "owner/name"; exits when missing."""
    store = RepositoryStore(session)
    if repo.isdigit():
        repository = store.find_by_id(int(repo))
    elif "/" in repo:
        owner, name = repo.split("/", 1)
        repository = store.find_by_owner_and_name(owner, name)
    else:
        repository = None
    if repository is None:
        console.print(f"[red]Repository not found: {repo}[/red]")
        raise typer.Exit(code=1)
    return repository


def _exit_with(failure: Failure) -> None:
    console.print(f"[red]Error ({failure.kind.value}): {failure.message}[/red]")
    raise typer.Exit(code=1)


def _run(coro):
    async def runner():
        try:
            return await coro
        finally:
            await close_async_http_client()

    return asyncio.run(runner())


def _grade(grade: str | None) -> str:
    if grade is None:
        return "-"
    color = GRADE_COLORS.get(grade, "white")
    return f"[{color}]{grade}[/{color}]"


def display_batch_report(dimension: str, report: BatchReport) -> None:
    table = Table(title=f"{dimension.capitalize()} evaluation")
    table.add_column("Evaluated", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Remaining", justify="right")
    table.add_row(
        str(report.evaluated), str(report.skipped), str(report.failed), str(report.remaining)
    )
    console.print(table)
    for issue_id, reason in report.reasons.items():
        console.print(f"   • issue {issue_id}: {reason}")
    if report.stopped_early:
        console.print("[yellow]⚠️  Stopped early after an upstream rate limit.[/yellow]")


database_option = typer.Option(
    None, "--database-url", help="SQLAlchemy database URL (default: TEAM_PULSE_DATABASE_URL)."
)
insecure_option = typer.Option(
    False, "--insecure", help="Disable SSL certificate verification for HTTPS requests."
)

# --- Commands ---


@app.command("init-db")
def init_db_command(database_url: str | None = database_option):
    """Create the database tables."""
    with _open_session(database_url) as session:
        init_db(session.get_bind())
    console.print("[green]✨ Database initialized.[/green]")


@app.command("generate-key")
def generate_key_command():
    """Print a new key for TEAM_PULSE_SECRET_KEY."""
    console.print(generate_key())


@app.command("register-repo")
def register_repo(
    repo: str = typer.Argument(..., help="Repository as owner/name."),
    token: str | None = typer.Option(
        None, "--token", help="Access token stored encrypted (default: use GITHUB_TOKEN)."
    ),
    start_date: datetime | None = typer.Option(
        None, "--start-date", formats=["%Y-%m-%d"], help="Tracking start date (default: today)."
    ),
    start_day: int = typer.Option(
        6, "--start-day", help="Sprint start weekday, 0=Sunday ... 6=Saturday."
    ),
    weeks: int = typer.Option(1, "--weeks", help="Sprint length in weeks (1 or 2)."),
    database_url: str | None = database_option,
):
    """Register a repository to track."""
    if "/" not in repo:
        console.print("[red]Repository must be given as owner/name.[/red]")
        raise typer.Exit(code=1)
    owner, name = repo.split("/", 1)
    with _open_session(database_url) as session:
        result = RegisterRepository(session).execute(
            owner,
            name,
            token=token,
            tracking_start_date=start_date.date() if start_date else None,
            sprint_start_day_of_week=start_day,
            sprint_duration_weeks=weeks,
        )
        if not result.success:
            _exit_with(result.failure)
        console.print(
            f"[green]Registered [bold]{result.repository.full_name}[/bold] "
            f"(id {result.repository.id}).[/green]"
        )


@app.command("register-collaborators")
def register_collaborators(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    users: list[str] = typer.Option(
        None, "--user", "-u", help="Only register these GitHub users (repeatable)."
    ),
    database_url: str | None = database_option,
    insecure: bool = insecure_option,
):
    """Register contributors of a repository as collaborators."""
    with _open_session(database_url, insecure) as session:
        repository = _resolve_repository(session, repo)
        try:
            vcs = github_provider_for(repository)
        except (ValueError, ValidationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1) from None
        result = _run(RegisterCollaborators(session, vcs).execute(repository.id, users or None))
        if not result.success:
            _exit_with(result.failure)
        console.print(
            f"{result.created_count} new, {len(result.collaborators)} total collaborator(s)"
        )
        for collaborator in result.collaborators:
            console.print(f"   • {collaborator.github_user_name}")


@app.command()
def sync(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    full: bool = typer.Option(False, "--full", help="Ignore the watermark and fetch everything."),
    no_link: bool = typer.Option(False, "--no-link", help="Skip linking PRs to Issues."),
    database_url: str | None = database_option,
    insecure: bool = insecure_option,
):
    """Synchronize Issues and Pull Requests of a repository."""
    with _open_session(database_url, insecure) as session:
        repository = _resolve_repository(session, repo)
        try:
            vcs = github_provider_for(repository)
        except (ValueError, ValidationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1) from None
        report = _run(
            SyncRepository(session, vcs).execute(repository.id, full=full, link=not no_link)
        )

        for label, result in (("Issues", report.issues), ("Pull requests", report.pull_requests)):
            if result.success:
                console.print(f"   {label}: [green]{result.synced_count} synced[/green]")
            else:
                console.print(f"   {label}: [red]{result.error}[/red]")
        if report.links is not None:
            console.print(
                f"   Links: {report.links.linked} linked, {report.links.unlinked} unlinked, "
                f"{report.links.failed} failed"
            )
        if report.failure is not None:
            console.print(f"   [red]{report.failure.message}[/red]")
        if not report.success:
            raise typer.Exit(code=1)


def _evaluate(dimension: str, repo: str, limit: int, database_url, insecure, concurrency) -> None:
    if concurrency:
        set_max_concurrency(concurrency)
    with _open_session(database_url, insecure) as session:
        repository = _resolve_repository(session, repo)
        try:
            ai_service = OpenAICompatibleService() if dimension != "speed" else None
            resolver = (
                LinkedPullRequestResolver(session, github_provider_for(repository))
                if dimension == "consistency"
                else None
            )
        except (ValueError, ValidationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1) from None
        service = IssueEvaluationService(session, ai_service, resolver)
        batch = BatchEvaluator(session, service)
        report = _run(batch.run(repository.id, dimension, limit))
        display_batch_report(dimension, report)


limit_option = typer.Option(
    DEFAULT_BATCH_LIMIT, "--limit", "-n", help=f"Issues per run (max {MAX_BATCH_LIMIT})."
)
concurrency_option = typer.Option(
    None, "--concurrency", help="Concurrent scoring-service calls (default: 3)."
)


@evaluate_app.command("speed")
def evaluate_speed_command(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    database_url: str | None = database_option,
):
    """Score completion speed of closed Issues."""
    _evaluate("speed", repo, DEFAULT_BATCH_LIMIT, database_url, False, None)


@evaluate_app.command("quality")
def evaluate_quality_command(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    limit: int = limit_option,
    concurrency: int | None = concurrency_option,
    database_url: str | None = database_option,
    insecure: bool = insecure_option,
):
    """Score description quality of Issues with the AI service."""
    _evaluate("quality", repo, limit, database_url, insecure, concurrency)


@evaluate_app.command("consistency")
def evaluate_consistency_command(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    limit: int = limit_option,
    concurrency: int | None = concurrency_option,
    database_url: str | None = database_option,
    insecure: bool = insecure_option,
):
    """Score Issue/PR consistency of closed Issues with the AI service."""
    _evaluate("consistency", repo, limit, database_url, insecure, concurrency)


@app.command()
def sprint(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    offset: int = typer.Option(0, "--offset", help="0=current, -1=previous, 1=next."),
    database_url: str | None = database_option,
):
    """Show the current sprint (or one relative to it)."""
    with _open_session(database_url) as session:
        repository = _resolve_repository(session, repo)
        result = GetCurrentSprint(session).execute(repository.id, offset)
        if not result.success:
            _exit_with(result.failure)
        info = result.info
        marker = " [green](current)[/green]" if info.sprint.is_current else ""
        console.print(
            f"[bold]{info.sprint.number}[/bold]{marker}: {info.sprint.period.format()} "
            f"[dim]({info.duration_weeks} week(s), starts {info.start_day_name})[/dim]"
        )


@app.command()
def dashboard(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    offset: int = typer.Option(0, "--offset", help="0=current, -1=previous, 1=next."),
    database_url: str | None = database_option,
):
    """Show sprint totals per collaborator and the team-health summary."""
    with _open_session(database_url) as session:
        repository = _resolve_repository(session, repo)
        result = GetSprintDashboard(session).execute(repository.id, offset)
        if not result.success:
            _exit_with(result.failure)
        data = result.data

        console.print(
            f"[bold cyan]{repository.full_name}[/bold cyan] - {data.sprint.sprint.number} "
            f"({data.sprint.sprint.period.format()})"
        )
        console.print(
            f"Issues: {data.total_issues} total, {data.closed_issues} closed, "
            f"{data.open_issues} open"
        )

        users = Table(title="Collaborators")
        users.add_column("User", style="cyan")
        users.add_column("Total", justify="right")
        users.add_column("Closed", justify="right", style="green")
        users.add_column("Open", justify="right", style="yellow")
        for stats in data.users:
            users.add_row(
                stats.username,
                str(stats.total_issues),
                str(stats.closed_issues),
                str(stats.open_issues),
            )
        console.print(users)

        health = Table(title="Team health")
        health.add_column("Dimension")
        health.add_column("Evaluated", justify="right")
        health.add_column("Average", justify="right")
        health.add_column("Grade", justify="center")
        for label, summary in (
            ("Speed", data.speed),
            ("Quality", data.quality),
            ("Consistency", data.consistency),
        ):
            average = "-" if summary.average_score is None else str(summary.average_score)
            health.add_row(label, str(summary.evaluated), average, _grade(summary.grade))
        console.print(health)
        if data.lead_time is not None:
            console.print(
                f"Lead time: {_grade(data.lead_time.grade)} {data.lead_time.message}"
            )


@app.command("sprint-settings")
def sprint_settings(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    start_day: int | None = typer.Option(None, "--start-day", help="0=Sunday ... 6=Saturday."),
    weeks: int | None = typer.Option(None, "--weeks", help="Sprint length in weeks (1 or 2)."),
    start_date: datetime | None = typer.Option(
        None, "--start-date", formats=["%Y-%m-%d"], help="New tracking start date."
    ),
    database_url: str | None = database_option,
):
    """Change sprint settings and re-bucket all Issues."""
    with _open_session(database_url) as session:
        repository = _resolve_repository(session, repo)
        result = UpdateSprintSettings(session).execute(
            repository.id, start_day, weeks, start_date.date() if start_date else None
        )
        if not result.success:
            _exit_with(result.failure)
        console.print("[green]Sprint settings updated.[/green]")


@app.command("recalc-sprints")
def recalc_sprints(
    repo: str = typer.Argument(..., help="Repository id or owner/name."),
    database_url: str | None = database_option,
):
    """Recompute sprint numbers of all Issues."""
    with _open_session(database_url) as session:
        repository = _resolve_repository(session, repo)
        result = RecalculateSprintNumbers(session).execute(repository.id)
        if not result.success:
            _exit_with(result.failure)
        console.print(f"[green]{result.synced_count} issue(s) moved to another sprint.[/green]")


@app.command()
def repos(database_url: str | None = database_option):
    """List registered repositories."""
    with _open_session(database_url) as session:
        table = Table(title="Repositories")
        table.add_column("Id", justify="right")
        table.add_column("Repository", style="cyan")
        table.add_column("Tracking since")
        table.add_column("Sprint")
        for repository in RepositoryStore(session).find_all():
            table.add_row(
                str(repository.id),
                repository.full_name,
                repository.tracking_start_date.isoformat(),
                f"{repository.sprint_duration_weeks}w from day {repository.sprint_start_day_of_week}",
            )
        console.print(table)


if __name__ == "__main__":
    app()
