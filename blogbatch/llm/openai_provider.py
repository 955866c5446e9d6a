"""OpenAI LLM implementation with structured output via JSON in prompt."""

from typing import Any

from openai import AsyncOpenAI

from blogbatch.llm.base import JSON_INSTRUCTION, T, parse_json_response


class OpenAIProvider:
    """OpenAI chat completion with optional structured (JSON) output."""

    service_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
    ):
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        # OpenAI exceptions propagate as-is; RetryPolicy inspects status_code
        params = {k: v for k, v in kwargs.items() if k not in ("model", "max_tokens")}
        if kwargs.get("max_tokens") is not None:
            params["max_completion_tokens"] = kwargs["max_tokens"]
        response = await self._client.chat.completions.create(
            model=kwargs.get("model") or self._model,
            messages=[{"role": "user", "content": prompt}],
            **params,
        )
        msg = response.choices[0].message
        return msg.content or ""

    async def complete_structured(self, prompt: str, schema: type[T], **kwargs: Any) -> T:
        raw = await self.complete(f"{prompt}\n\n{JSON_INSTRUCTION}", **kwargs)
        return parse_json_response(raw, schema)
