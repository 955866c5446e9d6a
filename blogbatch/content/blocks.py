"""Structured article body: heading / paragraph / list blocks."""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from blogbatch.errors import ContentBlockError


class HeadingBlock(BaseModel):
    type: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=3)
    content: str


class ParagraphBlock(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    content: str


class ListBlock(BaseModel):
    type: Literal["list"] = "list"
    items: list[str] = Field(min_length=1)


ContentBlock = Annotated[Union[HeadingBlock, ParagraphBlock, ListBlock], Field(discriminator="type")]

_BLOCKS = TypeAdapter(list[ContentBlock])

_HEADING = re.compile(r"^(#{1,3})\s+(.*)$")
_LIST_ITEM = re.compile(r"^[-*]\s+(.*)$")


def parse_blocks(payload: Any) -> list[ContentBlock]:
    """Validate a list of block dicts (or a JSON string of one)."""
    try:
        if isinstance(payload, (str, bytes)):
            return _BLOCKS.validate_json(payload)
        return _BLOCKS.validate_python(payload)
    except ValidationError as e:
        raise ContentBlockError(f"Invalid content blocks: {e.error_count()} error(s): {e}") from e


def dump_blocks(blocks: list[ContentBlock]) -> list[dict[str, Any]]:
    return _BLOCKS.dump_python(blocks, mode="json")


def markdown_to_blocks(text: str) -> list[ContentBlock]:
    """Line-based markdown parse.

    ``#``..``###`` lines become headings, consecutive ``-``/``*`` items one
    list, and consecutive text lines are joined into a single paragraph.
    Blank lines only separate; deeper headings are treated as level 3.
    """
    blocks: list[ContentBlock] = []
    paragraph: list[str] = []
    items: list[str] = []

    def flush() -> None:
        if paragraph:
            blocks.append(ParagraphBlock(content=" ".join(paragraph)))
            paragraph.clear()
        if items:
            blocks.append(ListBlock(items=list(items)))
            items.clear()

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            flush()
            hashes = len(line) - len(line.lstrip("#"))
            match = _HEADING.match(line) if hashes <= 3 else None
            content = match.group(2) if match else line.lstrip("#").strip()
            if content:
                blocks.append(HeadingBlock(level=min(hashes, 3), content=content))
            continue
        item = _LIST_ITEM.match(line)
        if item:
            if paragraph:
                flush()
            items.append(item.group(1))
            continue
        if items:
            flush()
        paragraph.append(line)
    flush()
    return blocks


def has_conclusion(blocks: list[ContentBlock]) -> bool:
    return any(isinstance(b, HeadingBlock) and "conclusion" in b.content.lower() for b in blocks)
