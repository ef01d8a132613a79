"""
Source-control abstraction layer for Team Pulse.

Only GitHub is supported; the registry keeps the provider pluggable.
"""

from team_pulse.vcs.base import (
    BaseVCSProvider,
    LinkedPullRequest,
    RemoteIssue,
    RemotePullRequest,
    RemoteRepositoryInfo,
    RemoteUser,
)
from team_pulse.vcs.github import GitHubProvider

__all__ = [
    "BaseVCSProvider",
    "GitHubProvider",
    "LinkedPullRequest",
    "RemoteIssue",
    "RemotePullRequest",
    "RemoteRepositoryInfo",
    "RemoteUser",
    "get_vcs_provider",
]

# Registry of supported VCS providers
_PROVIDERS: dict[str, type[BaseVCSProvider]] = {
    "github": GitHubProvider,
}


def get_vcs_provider(platform: str = "github", **kwargs) -> BaseVCSProvider:
    """
    Factory function to get VCS provider instance.

    Args:
        platform: VCS platform name. Default: 'github'
        **kwargs: Provider-specific configuration (e.g., token, client)

    Raises:
        ValueError: If platform is not supported
    """
    platform_lower = platform.lower()

    if platform_lower not in _PROVIDERS:
        supported = ", ".join(sorted(_PROVIDERS.keys()))
        raise ValueError(
            f"Unsupported VCS platform: {platform}. Supported platforms: {supported}"
        )

    return _PROVIDERS[platform_lower](**kwargs)
