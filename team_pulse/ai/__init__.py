"""
Structured-output scoring service used by the quality and consistency evaluators.
"""

from team_pulse.ai.base import StructuredOutputService, parse_structured_output
from team_pulse.ai.openai_compatible import OpenAICompatibleService

__all__ = [
    "StructuredOutputService",
    "OpenAICompatibleService",
    "parse_structured_output",
]
