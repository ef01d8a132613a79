"""
GitHub provider implementation for Team Pulse.

Lists are fetched through the REST API with page-number pagination; closing
issue references are resolved through the GraphQL API.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any

import httpx

from team_pulse.config import get_github_token
from team_pulse.errors import GitHubError
from team_pulse.http_client import get_async_http_client
from team_pulse.vcs.base import (
    BaseVCSProvider,
    LinkedPullRequest,
    RemoteIssue,
    RemotePullRequest,
    RemoteRepositoryInfo,
    RemoteUser,
)

GITHUB_REST_API = "https://api.github.com"
GITHUB_GRAPHQL_API = "https://api.github.com/graphql"

PER_PAGE = 100
MAX_PATCH_LENGTH = 5000

# Status codes meaning "this listing is not available to you" for the
# collaborator discovery strategies.
UNAVAILABLE_STATUSES = (401, 403, 404)

FILE_STATUS_LABELS = {
    "added": "[added]",
    "removed": "[removed]",
    "renamed": "[renamed]",
}


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@contextmanager
def _expect_shape(what: str):
    """Turn a missing key or a wrongly typed field in a GitHub payload into GitHubError."""
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise GitHubError(f"GitHub returned an unexpected {what}: {e!r}") from e


class GitHubProvider(BaseVCSProvider):
    """GitHub provider using the REST and GraphQL APIs."""

    def __init__(
        self,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        api_url: str = GITHUB_REST_API,
        graphql_url: str = GITHUB_GRAPHQL_API,
    ):
        """
        Initialize GitHub provider.

        Args:
            token: GitHub Personal Access Token. If not provided, reads from
                   the GITHUB_TOKEN environment variable.
            client: HTTP client to use instead of the shared pooled client.

        Raises:
            ValueError: If no token is available.
        """
        self.token = token or get_github_token()
        if not self.token:
            raise ValueError(
                "GITHUB_TOKEN is required for the GitHub provider.\n"
                "\n"
                "To get started:\n"
                "1. Create a GitHub Personal Access Token:\n"
                "   https://github.com/settings/tokens/new\n"
                "2. Select the 'repo' scope (read access to Issues and Pull Requests)\n"
                "3. Set the token:\n"
                "   export GITHUB_TOKEN='your_token_here'  # Linux/macOS\n"
                "   or add to your .env file: GITHUB_TOKEN=your_token_here\n"
                "   or store it encrypted with `team-pulse register-repo --token`\n"
            )
        self._client = client
        self.api_url = api_url.rstrip("/")
        self.graphql_url = graphql_url

    def get_platform_name(self) -> str:
        return "github"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _http(self) -> httpx.AsyncClient:
        return self._client or get_async_http_client()

    async def _request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._http().request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.TimeoutException as e:
            raise GitHubError(f"GitHub request timed out: {url}") from e
        except httpx.RequestError as e:
            raise GitHubError(f"GitHub request failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubError(
                f"GitHub API error {response.status_code}: {message}",
                status_code=response.status_code,
            )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise GitHubError(
                f"GitHub returned an unexpected response (not JSON): {response.text[:200]!r}",
                status_code=response.status_code,
            ) from e

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", f"{self.api_url}{path}", params=params)
        self._raise_for_status(response)
        # Listings of an empty repository answer 204 with no body
        if response.status_code == 204:
            return []
        return self._decode(response)

    async def _get_list(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        data = await self._get_json(path, params)
        if not isinstance(data, list):
            raise GitHubError(f"GitHub returned an unexpected listing for {path}")
        return data

    async def _paginate(
        self, path: str, params: dict[str, Any] | None = None
    ):
        """
        Yield pages of a REST listing, one request at a time.

        Stops when a page is shorter than PER_PAGE.
        """
        page = 1
        while True:
            query = dict(params or {}, per_page=PER_PAGE, page=page)
            data = await self._get_list(path, query)
            yield data
            if len(data) < PER_PAGE:
                return
            page += 1

    async def _query_graphql(
        self, query: str, variables: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Execute a GraphQL query against the GitHub API.

        Raises:
            GitHubError: If the API returns an HTTP error or GraphQL errors.
        """
        response = await self._request(
            "POST", self.graphql_url, json={"query": query, "variables": variables}
        )
        self._raise_for_status(response)
        data = self._decode(response)
        if not isinstance(data, dict):
            raise GitHubError("GitHub returned an unexpected GraphQL response")
        if data.get("errors"):
            raise GitHubError(f"GitHub API Errors: {data['errors']}")
        return data.get("data") or {}

    async def get_repository_info(self, owner: str, repo: str) -> RemoteRepositoryInfo:
        data = await self._get_json(f"/repos/{owner}/{repo}")
        with _expect_shape("repository"):
            return RemoteRepositoryInfo(
                owner=data["owner"]["login"],
                name=data["name"],
                full_name=data["full_name"],
                description=data.get("description"),
                private=bool(data.get("private")),
            )

    async def _list_users(self, path: str) -> list[RemoteUser] | None:
        users = []
        try:
            async for page in self._paginate(path):
                with _expect_shape("user listing"):
                    for item in page:
                        if item.get("login"):
                            users.append(
                                RemoteUser(item["login"], item.get("name"), item.get("avatar_url"))
                            )
        except GitHubError as e:
            if e.status_code in UNAVAILABLE_STATUSES:
                return None
            raise
        return users

    async def get_contributors(self, owner: str, repo: str) -> list[RemoteUser] | None:
        return await self._list_users(f"/repos/{owner}/{repo}/contributors")

    async def get_collaborators(self, owner: str, repo: str) -> list[RemoteUser] | None:
        return await self._list_users(f"/repos/{owner}/{repo}/collaborators")

    async def get_issue_authors(self, owner: str, repo: str) -> list[RemoteUser] | None:
        seen = {}
        try:
            async for page in self._paginate(
                f"/repos/{owner}/{repo}/issues", {"state": "all"}
            ):
                with _expect_shape("issue listing"):
                    for item in page:
                        user = item.get("user") or {}
                        login = user.get("login")
                        if login and login not in seen:
                            seen[login] = RemoteUser(login, None, user.get("avatar_url"))
        except GitHubError as e:
            if e.status_code in UNAVAILABLE_STATUSES:
                return None
            raise
        return list(seen.values())

    @staticmethod
    def _to_issue(item: dict[str, Any]) -> RemoteIssue:
        with _expect_shape("issue"):
            user = item.get("user") or {}
            assignee = item.get("assignee") or {}
            return RemoteIssue(
                number=item["number"],
                title=item["title"],
                body=item.get("body"),
                state=item["state"],
                author_login=user.get("login"),
                assignee_login=assignee.get("login"),
                created_at=parse_timestamp(item["created_at"]),
                updated_at=parse_timestamp(item["updated_at"]),
                closed_at=parse_timestamp(item.get("closed_at")),
                is_pull_request="pull_request" in item,
            )

    async def get_issues(
        self, owner: str, repo: str, since: datetime | None = None
    ) -> list[RemoteIssue]:
        params = {"state": "all", "sort": "updated", "direction": "desc"}
        if since is not None:
            params["since"] = since.isoformat()
        issues = []
        async for page in self._paginate(f"/repos/{owner}/{repo}/issues", params):
            issues.extend(self._to_issue(item) for item in page)
        # The issues endpoint also lists pull requests
        return [issue for issue in issues if not issue.is_pull_request]

    @staticmethod
    def _to_pull_request(item: dict[str, Any]) -> RemotePullRequest:
        with _expect_shape("pull request"):
            user = item.get("user") or {}
            return RemotePullRequest(
                number=item["number"],
                title=item["title"],
                body=item.get("body"),
                state=item["state"],
                author_login=user.get("login"),
                created_at=parse_timestamp(item["created_at"]),
                updated_at=parse_timestamp(item["updated_at"]),
                merged_at=parse_timestamp(item.get("merged_at")),
            )

    async def get_pull_requests(
        self, owner: str, repo: str, since: datetime | None = None
    ) -> list[RemotePullRequest]:
        """
        List Pull Requests, newest update first.

        The pulls endpoint has no `since` parameter, so results are filtered
        client-side; pagination stops at the first page containing an older
        entry because later pages are older still.
        """
        path = f"/repos/{owner}/{repo}/pulls"
        params = {"state": "all", "sort": "updated", "direction": "desc"}
        pulls = []
        page = 1
        while True:
            data = await self._get_list(path, dict(params, per_page=PER_PAGE, page=page))
            batch = [self._to_pull_request(item) for item in data]
            if since is not None:
                batch = [pr for pr in batch if pr.updated_at >= since]
            pulls.extend(batch)
            if len(data) < PER_PAGE or len(batch) < len(data):
                return pulls
            page += 1

    async def get_linked_issues_for_pr(
        self, owner: str, repo: str, pr_number: int
    ) -> list[int]:
        query = """
        query($owner: String!, $repo: String!, $pr: Int!) {
          repository(owner: $owner, name: $repo) {
            pullRequest(number: $pr) {
              closingIssuesReferences(first: 10) {
                nodes {
                  number
                }
              }
            }
          }
        }
        """
        data = await self._query_graphql(
            query, {"owner": owner, "repo": repo, "pr": pr_number}
        )
        with _expect_shape("closing issue references"):
            pull_request = (data.get("repository") or {}).get("pullRequest")
            if not pull_request:
                return []
            nodes = (pull_request.get("closingIssuesReferences") or {}).get("nodes") or []
            return [node["number"] for node in nodes if node]

    async def get_pull_request_details(
        self, owner: str, repo: str, pr_number: int
    ) -> LinkedPullRequest | None:
        pr = await self._get_json(f"/repos/{owner}/{repo}/pulls/{pr_number}")
        with _expect_shape("pull request"):
            if not pr.get("merged_at"):
                return None

        files = []
        async for page in self._paginate(f"/repos/{owner}/{repo}/pulls/{pr_number}/files"):
            files.extend(page)
        with _expect_shape("pull request"):
            return LinkedPullRequest(
                number=pr["number"],
                title=pr["title"],
                url=pr["html_url"],
                body=pr.get("body"),
                diff=summarize_diff(files),
                changed_files=[f["filename"] for f in files],
                additions=pr.get("additions", 0),
                deletions=pr.get("deletions", 0),
                merged_at=parse_timestamp(pr["merged_at"]),
            )


def summarize_diff(files: list[dict[str, Any]]) -> str:
    """
    Patch text of a Pull Request, truncated to MAX_PATCH_LENGTH characters.

    Falls back to a one-line-per-file summary when no file carries a patch
    (binary files, very large diffs).
    """
    patch = "\n\n".join(
        f"--- {f['filename']} ---\n{f['patch']}" for f in files if f.get("patch")
    )
    if len(patch) > MAX_PATCH_LENGTH:
        patch = patch[:MAX_PATCH_LENGTH] + "\n... (truncated)"
    if patch:
        return patch
    return "\n".join(
        f"{FILE_STATUS_LABELS.get(f.get('status'), '[modified]')} {f['filename']} "
        f"(+{f.get('additions', 0)}/-{f.get('deletions', 0)})"
        for f in files
    )
