"""
Relational storage for repositories, synchronized Issues/PRs and evaluations.
"""

from team_pulse.storage.database import (
    create_db_engine,
    get_engine,
    get_session_factory,
    init_db,
)
from team_pulse.storage.models import (
    Base,
    Collaborator,
    Evaluation,
    Issue,
    PullRequest,
    Repository,
    SyncMetadata,
)

__all__ = [
    "Base",
    "Collaborator",
    "Evaluation",
    "Issue",
    "PullRequest",
    "Repository",
    "SyncMetadata",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "init_db",
]
