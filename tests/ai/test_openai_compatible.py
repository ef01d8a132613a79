"""
Tests for the structured-output scoring service client.
"""

import asyncio
import json
from unittest.mock import patch

import httpx
import pytest

from team_pulse.ai.base import parse_structured_output
from team_pulse.ai.openai_compatible import OpenAICompatibleService
from team_pulse.errors import AIResponseError, AIServiceError, AIServiceTimeout
from team_pulse.scoring.schemas import QualityAssessment

VALID_REPLY = {
    "categories": [{"category_id": "context-goal", "score": 20, "feedback": "Clear"}],
    "overall_feedback": "Good",
    "improvement_suggestions": [],
}


def _service(handler) -> OpenAICompatibleService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleService(
        base_url="https://ai.example/v1/", api_key="key", model="test-model", client=client
    )


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


class TestParseStructuredOutput:
    def test_parses_json_string(self):
        result = parse_structured_output(QualityAssessment, json.dumps(VALID_REPLY))
        assert result.categories[0].score == 20

    def test_parses_fenced_json(self):
        text = "```json\n" + json.dumps(VALID_REPLY) + "\n```"
        assert parse_structured_output(QualityAssessment, text).overall_feedback == "Good"

    def test_accepts_decoded_dict(self):
        assert parse_structured_output(QualityAssessment, VALID_REPLY).overall_feedback == "Good"

    def test_invalid_json_is_a_response_error(self):
        with pytest.raises(AIResponseError, match="not valid JSON"):
            parse_structured_output(QualityAssessment, "{nope")

    def test_schema_mismatch_is_a_response_error(self):
        with pytest.raises(AIResponseError, match="does not match QualityAssessment"):
            parse_structured_output(QualityAssessment, {"categories": []})

    def test_non_finite_score_is_a_response_error(self):
        for value in ("NaN", "Infinity", "-Infinity"):
            text = (
                '{"categories": [{"category_id": "context-goal", "score": %s, '
                '"feedback": "Clear"}], "overall_feedback": "Good"}' % value
            )
            with pytest.raises(AIResponseError, match="does not match QualityAssessment"):
                parse_structured_output(QualityAssessment, text)

    def test_too_many_suggestions_are_rejected(self):
        reply = dict(VALID_REPLY, improvement_suggestions=["a", "b", "c", "d"])
        with pytest.raises(AIResponseError):
            parse_structured_output(QualityAssessment, reply)


def test_requires_api_key():
    with patch("team_pulse.ai.openai_compatible.get_ai_settings") as settings:
        settings.return_value = {
            "base_url": "https://ai.example/v1",
            "api_key": None,
            "model": "m",
            "temperature": 0.3,
        }
        with pytest.raises(ValueError, match="TEAM_PULSE_AI_API_KEY is required"):
            OpenAICompatibleService()


def test_sends_schema_and_prompt():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps(VALID_REPLY)))

    service = _service(handler)
    result = asyncio.run(
        service.generate_structured_output(QualityAssessment, "Rate this", max_tokens=500)
    )

    assert result.overall_feedback == "Good"
    assert seen["url"] == "https://ai.example/v1/chat/completions"
    assert seen["auth"] == "Bearer key"
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["max_tokens"] == 500
    assert body["messages"][1] == {"role": "user", "content": "Rate this"}
    assert body["response_format"]["json_schema"]["name"] == "QualityAssessment"
    assert "categories" in body["response_format"]["json_schema"]["schema"]["properties"]


def test_explicit_temperature_wins():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps(VALID_REPLY)))

    asyncio.run(
        _service(handler).generate_structured_output(QualityAssessment, "x", temperature=0.0)
    )
    assert seen["body"]["temperature"] == 0.0


@pytest.mark.parametrize("status,retryable", [(429, True), (503, True), (401, False)])
def test_http_errors(status, retryable):
    service = _service(lambda request: httpx.Response(status, json={"error": "x"}))
    with pytest.raises(AIServiceError) as excinfo:
        asyncio.run(service.generate_structured_output(QualityAssessment, "x"))
    assert excinfo.value.status_code == status
    assert excinfo.value.retryable is retryable
    assert excinfo.value.is_rate_limited is (status == 429)


def test_timeout_is_retryable():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(AIServiceTimeout) as excinfo:
        asyncio.run(_service(handler).generate_structured_output(QualityAssessment, "x"))
    assert excinfo.value.retryable is True


def test_unexpected_envelope_is_a_response_error():
    service = _service(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(AIResponseError):
        asyncio.run(service.generate_structured_output(QualityAssessment, "x"))


def test_empty_content_is_a_response_error():
    service = _service(lambda request: httpx.Response(200, json=_completion("")))
    with pytest.raises(AIResponseError, match="empty reply"):
        asyncio.run(service.generate_structured_output(QualityAssessment, "x"))
