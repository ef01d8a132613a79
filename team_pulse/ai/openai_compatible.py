"""
Scoring service backed by an OpenAI-compatible chat completions endpoint.
"""

import httpx

from team_pulse.ai.base import StructuredOutputService, T, parse_structured_output
from team_pulse.config import get_ai_settings, get_http_timeout
from team_pulse.errors import AIResponseError, AIServiceError, AIServiceTimeout
from team_pulse.http_client import get_async_http_client

SYSTEM_PROMPT = (
    "You are a strict software-engineering reviewer. "
    "Reply only with a JSON object that conforms to the given JSON schema."
)


class OpenAICompatibleService(StructuredOutputService):
    """Structured output through /chat/completions with a json_schema response format."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the service.

        Args:
            base_url: API root, e.g. https://api.openai.com/v1
            api_key: Bearer token; falls back to TEAM_PULSE_AI_API_KEY
            model: Model name; falls back to TEAM_PULSE_AI_MODEL
            temperature: Default sampling temperature
            client: HTTP client to use instead of the shared pooled one
            timeout: Per-call timeout in seconds

        Raises:
            ValueError: If no API key is configured
        """
        settings = get_ai_settings()
        self.base_url = (base_url or settings["base_url"]).rstrip("/")
        self.api_key = api_key or settings["api_key"]
        self.model = model or settings["model"]
        self.temperature = (
            temperature if temperature is not None else settings["temperature"]
        )
        self.timeout = timeout if timeout is not None else get_http_timeout()
        self._client = client
        if not self.api_key:
            raise ValueError(
                "TEAM_PULSE_AI_API_KEY is required for AI-assisted evaluation.\n"
                "Set it in the environment or in your .env file."
            )

    def _build_payload(
        self,
        schema: type[T],
        prompt: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature if temperature is not None else self.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(),
                },
            },
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    async def generate_structured_output(
        self,
        schema: type[T],
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> T:
        client = self._client or get_async_http_client()
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=self._build_payload(schema, prompt, temperature, max_tokens),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise AIServiceTimeout(f"Scoring service timed out: {e}") from e
        except httpx.RequestError as e:
            error = AIServiceError(f"Scoring service request failed: {e}")
            error.retryable = True
            raise error from e

        if response.status_code >= 400:
            raise AIServiceError(
                f"Scoring service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIResponseError(f"Unexpected scoring service reply: {e}") from e
        if not content:
            raise AIResponseError("Scoring service returned an empty reply")

        return parse_structured_output(schema, content)
