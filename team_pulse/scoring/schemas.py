"""
Response shapes requested from the structured-output scoring service.

Replies are validated against these models before any scoring happens; a
reply that does not conform is an AIResponseError, never partially trusted.
"""

from pydantic import BaseModel, Field, FiniteFloat


class CategoryAssessment(BaseModel):
    category_id: str = Field(
        description="Category id, e.g. context-goal or requirement-coverage"
    )
    score: FiniteFloat = Field(description="Score for this category, from 0 to its maximum")
    feedback: str = Field(description="Specific feedback for this category")


class QualityAssessment(BaseModel):
    categories: list[CategoryAssessment]
    overall_feedback: str = Field(description="Overall comment, 2-3 sentences")
    improvement_suggestions: list[str] = Field(
        default_factory=list,
        max_length=3,
        description="Most effective improvements first, at most 3 concrete actions",
    )


class ConsistencyAssessment(BaseModel):
    categories: list[CategoryAssessment]
    overall_feedback: str = Field(description="Overall comment, 2-3 sentences")
    issue_improvement_suggestions: list[str] = Field(
        default_factory=list,
        max_length=3,
        description="Improvements to the Issue description; empty when it is adequate",
    )
