"""
Scoring value objects and evaluators.

Speed is deterministic; quality and consistency are scored by a
structured-output service against fixed rubrics.
"""

from team_pulse.scoring.base import Score, grade_for_score
from team_pulse.scoring.consistency import ConsistencyEvaluator, ConsistencyScore
from team_pulse.scoring.quality import QualityEvaluator, QualityScore
from team_pulse.scoring.speed import evaluate_speed, lead_time_from_hours

__all__ = [
    "ConsistencyEvaluator",
    "ConsistencyScore",
    "QualityEvaluator",
    "QualityScore",
    "Score",
    "evaluate_speed",
    "grade_for_score",
    "lead_time_from_hours",
]
