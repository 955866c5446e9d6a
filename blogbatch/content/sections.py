"""Section-by-section article drafting through the rate-limited LLM."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from blogbatch.llm.base import LLMProvider
from blogbatch.ratelimit import RateLimiter
from blogbatch.retry import NO_RETRY, RetryPolicy
from blogbatch.topics.models import Topic

logger = logging.getLogger(__name__)

FAILED_PLACEHOLDER = "[Content generation failed]"
SECTION_TEMPERATURE = 0.7


@dataclass(frozen=True)
class SectionDefinition:
    name: str
    prompt: Callable[[Topic], str]


SECTION_DEFINITIONS: tuple[SectionDefinition, ...] = (
    SectionDefinition(
        "Introduction",
        lambda t: (
            f'Write an engaging introduction (350 words) for an article about "{t.topic}". '
            "Include: compelling hook, what readers will learn, why it matters. "
            f"Primary keyword: {t.primary_keyword}. Use natural, conversational tone."
        ),
    ),
    SectionDefinition(
        "What Is",
        lambda t: (
            f'Write the "What is {t.primary_keyword}?" section (750 words) covering: foundation, '
            "definition, business value, why it's important. Include specific examples and real-world scenarios."
        ),
    ),
    SectionDefinition(
        "Key Requirements",
        lambda t: (
            'Write the "Key Requirements & Components" section (1,000 words) with a deep dive into '
            f"the requirements of {t.primary_keyword}, with examples. Be comprehensive and practical."
        ),
    ),
    SectionDefinition(
        "Implementation Guide",
        lambda t: (
            f'Write a "Step-by-Step Implementation Guide" (2,500 words) for {t.primary_keyword} with a '
            "complete walkthrough including examples, best practices, and actionable steps."
        ),
    ),
    SectionDefinition(
        "Costs Timeline",
        lambda t: (
            f'Write a "Costs, Timeline & Resources" section (900 words) for {t.primary_keyword} '
            "covering practical planning and budgeting information."
        ),
    ),
    SectionDefinition(
        "Common Mistakes",
        lambda t: (
            f'Write a "Common Mistakes to Avoid" section (700 words) about {t.primary_keyword} '
            "covering top pitfalls and solutions."
        ),
    ),
    SectionDefinition(
        "Best Practices",
        lambda t: (
            f'Write a "Best Practices & Tools" section (900 words) for {t.primary_keyword} '
            "with recommendations and resources."
        ),
    ),
    SectionDefinition(
        "FAQ",
        lambda t: (
            'Write an "FAQ Section" (900 words) with 12-15 comprehensive questions and detailed '
            f"answers about {t.primary_keyword}."
        ),
    ),
    SectionDefinition(
        "Conclusion",
        lambda t: (
            "Write a comprehensive Conclusion (500 words) that MUST include: summary of key takeaways, "
            "clear next steps for readers, final motivational closing, and a call to action. "
            f"The article is about {t.topic}. This must be a complete, finished conclusion."
        ),
    ),
)


def research_context(serp: dict[str, Any] | None, community: dict[str, Any] | None) -> str:
    """Short research digest appended to every section prompt; empty when there is none."""
    parts: list[str] = []
    if serp:
        questions = serp.get("questions") or []
        related = serp.get("related_keywords") or []
        if questions:
            parts.append("Questions searchers ask: " + "; ".join(questions[:8]))
        if related:
            parts.append("Related keywords: " + ", ".join(related[:8]))
    if community:
        pains = community.get("pain_points") or []
        if pains:
            parts.append("Community pain points: " + json.dumps(pains[:5]))
    return "\n".join(parts)


async def generate_sections(
    topic: Topic,
    llm: LLMProvider,
    limiter: RateLimiter,
    delay: float = 1.0,
    context: str = "",
    retry: RetryPolicy = NO_RETRY,
) -> list[str]:
    """Draft every section in order, one call at a time.

    Returns one markdown chunk per section (``## Name`` plus body). A section
    whose call fails gets a placeholder body so the article keeps its shape.
    """
    sections: list[str] = []
    total = len(SECTION_DEFINITIONS)
    for index, section in enumerate(SECTION_DEFINITIONS):
        prompt = section.prompt(topic)
        if context:
            prompt = f"{prompt}\n\nResearch notes:\n{context}"
        logger.info("  %d/%d: %s...", index + 1, total, section.name)
        try:
            text = await retry.run(
                lambda p=prompt: limiter.execute(
                    llm.service_name, lambda: llm.complete(p, temperature=SECTION_TEMPERATURE)
                ),
                label=f"section {section.name}",
            )
            sections.append(f"## {section.name}\n\n{text.strip()}")
            logger.debug("  %s complete (%d chars)", section.name, len(text))
        except Exception as e:
            logger.error("  Failed to generate %s: %s", section.name, e)
            sections.append(f"## {section.name}\n\n{FAILED_PLACEHOLDER}")

        if index < total - 1 and delay > 0:
            await asyncio.sleep(delay)
    return sections
