"""Gemini LLM implementation using the google-genai SDK (async client)."""

from typing import Any

from google import genai
from google.genai import types

from blogbatch.llm.base import JSON_INSTRUCTION, T, parse_json_response


class GeminiProvider:
    """Gemini text generation with optional structured (JSON) output."""

    service_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
    ):
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required for the gemini provider")
        self._client = genai.Client(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        config = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.7),
            max_output_tokens=kwargs.get("max_tokens", 8192),
        )
        # Use the async client so the event loop is never blocked
        response = await self._client.aio.models.generate_content(
            model=kwargs.get("model") or self._model,
            contents=prompt,
            config=config,
        )
        return response.text or ""

    async def complete_structured(self, prompt: str, schema: type[T], **kwargs: Any) -> T:
        raw = await self.complete(f"{prompt}\n\n{JSON_INSTRUCTION}", **kwargs)
        return parse_json_response(raw, schema)
