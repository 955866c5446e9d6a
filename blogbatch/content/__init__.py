"""Article content: block model, section drafting and article assembly."""

from blogbatch.content.article import Article, build_article, detect_category, slugify
from blogbatch.content.blocks import (
    ContentBlock,
    HeadingBlock,
    ListBlock,
    ParagraphBlock,
    dump_blocks,
    markdown_to_blocks,
    parse_blocks,
)
from blogbatch.content.sections import FAILED_PLACEHOLDER, SECTION_DEFINITIONS, generate_sections

__all__ = [
    "Article",
    "ContentBlock",
    "FAILED_PLACEHOLDER",
    "HeadingBlock",
    "ListBlock",
    "ParagraphBlock",
    "SECTION_DEFINITIONS",
    "build_article",
    "detect_category",
    "dump_blocks",
    "generate_sections",
    "markdown_to_blocks",
    "parse_blocks",
    "slugify",
]
