"""Abstract LLM provider protocol."""

import json
import re
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)

JSON_INSTRUCTION = "Respond with a single JSON object only. No markdown, no code fence, no explanation."


class LLMProvider(Protocol):
    """Protocol for LLM backends (Gemini, OpenAI, Anthropic)."""

    # Rate-limiter key for this backend
    service_name: str

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        """Return raw text completion."""
        ...

    async def complete_structured(self, prompt: str, schema: type[T], **kwargs: Any) -> T:
        """Return completion parsed into the given Pydantic model (JSON)."""
        ...


def parse_json_response(raw: str, schema: type[T]) -> T:
    """Strip a possible markdown code fence and validate the JSON body against ``schema``."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```\s*$", "", text)
    return schema.model_validate(json.loads(text))
