"""Anthropic LLM implementation with structured output via JSON parse."""

from typing import Any

from anthropic import AsyncAnthropic

from blogbatch.llm.base import JSON_INSTRUCTION, T, parse_json_response


class AnthropicProvider:
    """Anthropic chat completion with optional structured (JSON) output."""

    service_name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
    ):
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        response = await self._client.messages.create(
            model=kwargs.get("model") or self._model,
            max_tokens=kwargs.get("max_tokens", 8192),
            temperature=kwargs.get("temperature", 0.7),
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text if response.content else ""

    async def complete_structured(self, prompt: str, schema: type[T], **kwargs: Any) -> T:
        raw = await self.complete(f"{prompt}\n\n{JSON_INSTRUCTION}", **kwargs)
        return parse_json_response(raw, schema)
