"""
Structured-output scoring service interface.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from team_pulse.errors import AIResponseError

T = TypeVar("T", bound=BaseModel)


class StructuredOutputService(ABC):
    """A language-model service that answers with JSON conforming to a schema."""

    @abstractmethod
    async def generate_structured_output(
        self,
        schema: type[T],
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> T:
        """
        Ask the service for a reply shaped like `schema`.

        Raises:
            AIResponseError: If the reply does not validate against `schema`
            AIServiceTimeout: If the call timed out
            AIServiceError: For any other upstream failure
        """


def parse_structured_output(schema: type[T], raw: str | dict[str, Any]) -> T:
    """
    Validate a raw reply against a schema (parse-or-fail).

    Accepts a JSON string (optionally wrapped in a ```json fence) or an
    already-decoded dict.

    Raises:
        AIResponseError: If the reply is not JSON or does not match the schema.
    """
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("```"):
            text = text.split("\n", 1)[1] if "\n" in text else ""
            text = text.rsplit("```", 1)[0]
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise AIResponseError(f"Reply is not valid JSON: {e}") from e
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as e:
        raise AIResponseError(
            f"Reply does not match {schema.__name__}: {e.error_count()} error(s)"
        ) from e
