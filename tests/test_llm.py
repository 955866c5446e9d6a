"""Tests for provider selection and JSON response parsing."""

from types import SimpleNamespace

import pytest
from pydantic import BaseModel, ValidationError

from blogbatch.llm import AnthropicProvider, OpenAIProvider, get_provider, parse_json_response


class Estimate(BaseModel):
    volume: int
    tags: list[str] = []


def test_parse_plain_json():
    assert parse_json_response('{"volume": 10}', Estimate).volume == 10


def test_parse_fenced_json():
    raw = '```json\n{"volume": 5, "tags": ["a"]}\n```'
    assert parse_json_response(raw, Estimate) == Estimate(volume=5, tags=["a"])


def test_parse_rejects_wrong_shape():
    with pytest.raises(ValidationError):
        parse_json_response('{"volume": "many"}', Estimate)
    with pytest.raises(ValueError):
        parse_json_response("no json here", Estimate)


def test_get_provider_selects_backend():
    assert isinstance(get_provider("openai", api_key="sk-test"), OpenAIProvider)
    assert isinstance(get_provider("Anthropic", api_key="sk-ant-test"), AnthropicProvider)
    assert get_provider("openai", api_key="sk-test").service_name == "openai"


def test_gemini_requires_key():
    with pytest.raises(ValueError):
        get_provider("gemini", api_key=None)


class _RecordingCompletions:
    def __init__(self):
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content="drafted")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.mark.anyio
async def test_openai_maps_max_tokens_to_completion_limit():
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4o-mini")
    completions = _RecordingCompletions()
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

    assert await provider.complete("Write an intro", temperature=0.7, max_tokens=512) == "drafted"
    assert await provider.complete("Write an intro") == "drafted"

    first, second = completions.calls
    assert first["max_completion_tokens"] == 512
    assert "max_tokens" not in first
    assert first["temperature"] == 0.7
    assert first["model"] == "gpt-4o-mini"
    assert "max_completion_tokens" not in second
