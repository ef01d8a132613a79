"""
Synchronization of GitHub Issues, Pull Requests and collaborators.
"""

from team_pulse.sync.collaborators import RegisterCollaborators
from team_pulse.sync.issues import SyncIssues
from team_pulse.sync.pull_requests import LinkPullRequests, SyncPullRequests
from team_pulse.sync.repositories import (
    RecalculateSprintNumbers,
    RegisterRepository,
    UpdateSprintSettings,
    github_provider_for,
)
from team_pulse.sync.repository_sync import SyncRepository

__all__ = [
    "LinkPullRequests",
    "RecalculateSprintNumbers",
    "RegisterCollaborators",
    "RegisterRepository",
    "SyncIssues",
    "SyncPullRequests",
    "SyncRepository",
    "UpdateSprintSettings",
    "github_provider_for",
]
