"""LLM adapter layer: Gemini, OpenAI and Anthropic behind a common protocol."""

from blogbatch.llm.anthropic_provider import AnthropicProvider
from blogbatch.llm.base import LLMProvider, parse_json_response
from blogbatch.llm.openai_provider import OpenAIProvider


def get_provider(provider_name: str, **kwargs: object) -> LLMProvider:
    """Return the configured LLM provider. provider_name: 'gemini' | 'openai' | 'anthropic'."""
    name = provider_name.lower()
    if name == "anthropic":
        return AnthropicProvider(**kwargs)
    if name == "openai":
        return OpenAIProvider(**kwargs)
    from blogbatch.llm.gemini_provider import GeminiProvider

    return GeminiProvider(**kwargs)


__all__ = ["LLMProvider", "OpenAIProvider", "AnthropicProvider", "get_provider", "parse_json_response"]
