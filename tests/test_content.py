"""Tests for content blocks, section drafting and article assembly."""

import pytest

from blogbatch.content import (
    FAILED_PLACEHOLDER,
    SECTION_DEFINITIONS,
    HeadingBlock,
    ListBlock,
    ParagraphBlock,
    build_article,
    detect_category,
    dump_blocks,
    generate_sections,
    markdown_to_blocks,
    parse_blocks,
    slugify,
)
from blogbatch.errors import ContentBlockError
from blogbatch.ratelimit import RateLimiter
from blogbatch.topics import Topic

from conftest import FakeLLM


def _topic(**overrides):
    fields = {
        "id": "t1",
        "topic": "SOC 2 Compliance: The Complete Implementation Guide for Growing Startups",
        "primary_keyword": "soc 2 compliance",
        "secondary_keywords": ["soc 2 audit", "soc 2 cost", "type 2", "controls", "evidence"],
        "priority": 2,
        "category": "Security",
    }
    fields.update(overrides)
    return Topic(**fields)


class TestBlocks:

    def test_markdown_to_blocks(self):
        text = "# Title\n\nFirst line\nsecond line\n\n- one\n* two\n\n### Deep\nTail"
        blocks = markdown_to_blocks(text)
        assert blocks == [
            HeadingBlock(level=1, content="Title"),
            ParagraphBlock(content="First line second line"),
            ListBlock(items=["one", "two"]),
            HeadingBlock(level=3, content="Deep"),
            ParagraphBlock(content="Tail"),
        ]

    def test_deep_headings_clamped(self):
        assert markdown_to_blocks("##### Small") == [HeadingBlock(level=3, content="Small")]

    def test_parse_blocks_accepts_dicts_and_json(self):
        payload = [{"type": "heading", "level": 2, "content": "Intro"}, {"type": "list", "items": ["a"]}]
        blocks = parse_blocks(payload)
        assert isinstance(blocks[0], HeadingBlock) and isinstance(blocks[1], ListBlock)
        assert parse_blocks('[{"type": "paragraph", "content": "x"}]') == [ParagraphBlock(content="x")]
        assert dump_blocks(blocks) == payload

    @pytest.mark.parametrize(
        "payload",
        [
            [{"type": "heading", "level": 4, "content": "too deep"}],
            [{"type": "list", "items": []}],
            [{"type": "table", "rows": []}],
            "not json",
        ],
    )
    def test_parse_blocks_rejects_bad_payloads(self, payload):
        with pytest.raises(ContentBlockError):
            parse_blocks(payload)


class TestArticle:

    def test_build_article_fields(self):
        content = "## Introduction\n\nSOC 2 matters. It builds trust. Buyers ask for it.\n\n## Conclusion\n\nDone."
        article = build_article(_topic(), content)
        assert article.slug == "soc-2-compliance-the-complete-implementation-guide-for-growing-startups"
        assert len(article.meta_title) <= 60 and article.meta_title.endswith("...")
        assert article.meta_description == "SOC 2 matters. It builds trust."
        assert article.category == "SOC 2"
        assert article.featured is True
        assert article.tags == ["soc 2 compliance", "soc 2 audit", "soc 2 cost", "type 2", "controls"]
        assert article.read_time == "1 min read"
        assert article.schema_data["@type"] == "Article"
        assert article.content[0] == HeadingBlock(level=2, content="Introduction")

    def test_low_priority_not_featured_and_category_fallback(self):
        article = build_article(_topic(topic="Vendor Reviews", primary_keyword="vendor review", priority=9), "Text.")
        assert article.featured is False
        assert article.category == "Security"

    def test_meta_description_limit(self):
        long_sentence = "word " * 60 + "end."
        article = build_article(_topic(), long_sentence)
        assert len(article.meta_description) <= 155

    def test_missing_conclusion_warns(self, caplog):
        build_article(_topic(), "## Introduction\n\nBody.")
        assert "conclusion" in caplog.text.lower()

    def test_detect_category_default(self):
        assert detect_category(_topic(topic="Misc", primary_keyword="misc", category=None)) == "Compliance"

    def test_slugify(self):
        assert slugify("  ISO 27001 -- What's New?  ") == "iso-27001-whats-new"


@pytest.mark.anyio
async def test_generate_sections_in_order_with_placeholder():
    llm = FakeLLM(fail_on="Common Mistakes")
    sections = await generate_sections(_topic(), llm, RateLimiter(), delay=0, context="Questions: q1")

    assert len(sections) == len(SECTION_DEFINITIONS) == 9
    assert sections[0].startswith("## Introduction")
    assert sections[-1].startswith("## Conclusion")
    mistakes = next(s for s in sections if s.startswith("## Common Mistakes"))
    assert FAILED_PLACEHOLDER in mistakes
    assert all("Research notes:\nQuestions: q1" in p for p in llm.prompts)


@pytest.mark.anyio
async def test_generated_sections_build_a_complete_article():
    sections = await generate_sections(_topic(), FakeLLM(), RateLimiter(), delay=0)
    article = build_article(_topic(), "\n\n".join(sections))
    headings = [b.content for b in article.content if isinstance(b, HeadingBlock)]
    assert headings == [s.name for s in SECTION_DEFINITIONS]
