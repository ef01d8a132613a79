"""Full synchronization of one repository."""

from datetime import datetime, timezone

from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from team_pulse.results import RepositorySyncReport, SyncResult, not_found, storage_failed
from team_pulse.storage.stores import RepositoryStore, SyncMetadataStore
from team_pulse.sync.issues import SyncIssues
from team_pulse.sync.pull_requests import LinkPullRequests, SyncPullRequests
from team_pulse.vcs.base import BaseVCSProvider

console = Console()


class SyncRepository:
    """
    Runs Issue sync and Pull Request sync, then PR linking.

    The two syncs are independent: one failing does not stop the other, and
    neither undoes what the other committed. The watermark advances to the
    time captured before fetching, and only when both syncs succeeded, so an
    item whose persistence failed is fetched again next time.
    """

    def __init__(self, session: Session, vcs: BaseVCSProvider):
        self.session = session
        self.vcs = vcs
        self.repositories = RepositoryStore(session)
        self.sync_metadata = SyncMetadataStore(session)

    async def execute(
        self,
        repository_id: int,
        since: datetime | None = None,
        full: bool = False,
        link: bool = True,
    ) -> RepositorySyncReport:
        """
        Args:
            repository_id: Local repository id
            since: Explicit watermark; defaults to the stored one
            full: Ignore any watermark and fetch everything
            link: Resolve closing Issues of the synchronized PRs
        """
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            missing = SyncResult(False, failure=not_found("Repository not found"))
            return RepositorySyncReport(missing, missing, failure=missing.failure)

        if full:
            since = None
        elif since is None:
            since = self.sync_metadata.get_last_sync_at(repository_id)
        started_at = datetime.now(timezone.utc)

        label = f"since {since.isoformat()}" if since else "full"
        console.print(f"Syncing [bold cyan]{repository.full_name}[/bold cyan] ({label})...")

        issues = await SyncIssues(self.session, self.vcs).execute(repository_id, since, started_at)
        pull_requests = await SyncPullRequests(self.session, self.vcs).execute(
            repository_id, since
        )

        links = None
        if link and pull_requests.success and pull_requests.numbers:
            links = await LinkPullRequests(self.session, self.vcs).execute(
                repository_id, pull_requests.numbers
            )

        advanced = False
        if issues.success and pull_requests.success:
            try:
                self.sync_metadata.advance(repository_id, started_at)
            except SQLAlchemyError as e:
                console.print(f"[red]Error storing the sync watermark: {e}[/red]")
                return RepositorySyncReport(
                    issues,
                    pull_requests,
                    links,
                    failure=storage_failed(f"Failed to store the sync watermark: {e}"),
                )
            advanced = True
        else:
            console.print(
                "[yellow]⚠️  Sync incomplete; the watermark was not advanced.[/yellow]"
            )

        return RepositorySyncReport(issues, pull_requests, links, advanced)

