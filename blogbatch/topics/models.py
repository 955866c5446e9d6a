"""Topic schema. JSON topic files use camelCase keys (primaryKeyword, ...)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Topic(BaseModel):
    """A candidate article: one unit of generation work."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = ""
    topic: str
    primary_keyword: str
    secondary_keywords: list[str] = Field(default_factory=list)
    search_volume: str | int | None = None
    priority: int
    category: str | None = None
    competitor_urls: list[str] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InvalidTopic(BaseModel):
    topic: dict[str, Any]
    errors: list[str]


class TopicValidation(BaseModel):
    valid: list[Topic] = Field(default_factory=list)
    invalid: list[InvalidTopic] = Field(default_factory=list)
