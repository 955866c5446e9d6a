"""Turn generated markdown plus its topic into a publishable article record."""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from pydantic import BaseModel, Field

from blogbatch.content.blocks import ContentBlock, has_conclusion, markdown_to_blocks
from blogbatch.content.sections import FAILED_PLACEHOLDER
from blogbatch.topics.models import Topic

logger = logging.getLogger(__name__)

AUTHOR = "Editorial Team"
AUTHOR_AVATAR = "/images/authors/editorial-team.jpg"
DEFAULT_CATEGORY = "Compliance"
META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 155
WORDS_PER_MINUTE = 200

# First match wins
_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("SOC 2", ("soc 2", "soc2")),
    ("HIPAA", ("hipaa",)),
    ("ISO 27001", ("iso 27001", "iso27001")),
    ("PCI DSS", ("pci dss", "pci-dss")),
    ("GDPR", ("gdpr",)),
    ("NIST", ("nist",)),
    ("CMMC", ("cmmc",)),
    ("FedRAMP", ("fedramp",)),
    ("HITRUST", ("hitrust",)),
]


class Article(BaseModel):
    slug: str
    title: str
    author: str = AUTHOR
    author_avatar: str = AUTHOR_AVATAR
    category: str
    excerpt: str
    content: list[ContentBlock]
    read_time: str
    tags: list[str] = Field(default_factory=list)
    featured: bool = False
    image: str = ""
    image_alt: str = ""
    meta_title: str
    meta_description: str
    focus_keyword: str
    keywords: list[str] = Field(default_factory=list)
    schema_data: dict[str, Any] = Field(default_factory=dict)
    internal_links: list[str] = Field(default_factory=list)
    external_links: list[str] = Field(default_factory=list)


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug).strip("-")


def truncate(text: str, limit: int) -> str:
    """Cut to ``limit`` characters, ending with an ellipsis when shortened."""
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def detect_category(topic: Topic) -> str:
    text = f"{topic.topic} {topic.primary_keyword}".lower()
    for name, needles in _CATEGORY_KEYWORDS:
        if any(n in text for n in needles):
            return name
    return topic.category or DEFAULT_CATEGORY


def read_time(text: str) -> str:
    words = len(text.split())
    return f"{max(1, math.ceil(words / WORDS_PER_MINUTE))} min read"


def _lead(blocks: list[ContentBlock], sentences: int = 2) -> str:
    """First ``sentences`` sentences of the first real paragraph."""
    for block in blocks:
        if block.type == "paragraph" and FAILED_PLACEHOLDER not in block.content:
            parts = re.split(r"(?<=[.!?])\s+", block.content.strip())
            return " ".join(parts[:sentences])
    return ""


def build_article(topic: Topic, content: str) -> Article:
    blocks = markdown_to_blocks(content)
    if not has_conclusion(blocks):
        logger.warning("Article %r does not appear to have a conclusion heading", topic.topic)

    slug = slugify(topic.topic)
    lead = _lead(blocks) or f"Complete guide to {topic.primary_keyword}."
    description = truncate(lead, META_DESCRIPTION_MAX)

    return Article(
        slug=slug,
        title=topic.topic,
        category=detect_category(topic),
        excerpt=lead,
        content=blocks,
        read_time=read_time(content),
        tags=[topic.primary_keyword, *topic.secondary_keywords[:4]],
        featured=topic.priority <= 3,
        image=f"/images/blog/{slug}.png",
        image_alt=topic.topic,
        meta_title=truncate(topic.topic, META_TITLE_MAX),
        meta_description=description,
        focus_keyword=topic.primary_keyword,
        keywords=list(topic.secondary_keywords),
        schema_data={
            "@context": "https://schema.org",
            "@type": "Article",
            "headline": topic.topic,
            "description": f"Complete guide to {topic.primary_keyword}",
        },
    )
