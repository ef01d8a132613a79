"""
Evaluation use cases: per-Issue scoring and batch runs.
"""

from team_pulse.evaluation.batch import BatchEvaluator
from team_pulse.evaluation.linked_prs import LinkedPullRequestResolver
from team_pulse.evaluation.service import IssueEvaluationService

__all__ = ["BatchEvaluator", "IssueEvaluationService", "LinkedPullRequestResolver"]
