"""Research payloads. Cached as JSON via ``model_dump(mode="json")``."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Competition = Literal["low", "medium", "high"]
Sentiment = Literal["positive", "neutral", "negative"]


class CompetitorData(BaseModel):
    url: str
    title: str = ""
    position: int
    domain: str = ""
    snippet: str = ""


class FeaturedSnippet(BaseModel):
    type: Literal["paragraph", "list", "table"] = "paragraph"
    content: str = ""
    source: str = ""
    url: str = ""


class SERPData(BaseModel):
    keyword: str
    search_volume: int = 5000
    competition: Competition = "medium"
    cpc: float = 5.0
    related_keywords: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    top_competitors: list[CompetitorData] = Field(default_factory=list)
    featured_snippet: FeaturedSnippet | None = None


class KeywordEstimate(BaseModel):
    """Shape the LLM is asked to fill when no SerpAPI key is configured."""

    search_volume: int = 5000
    competition: Competition = "medium"
    cpc: float = 10.0
    related_keywords: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)


class RedditInsight(BaseModel):
    question: str
    subreddit: str = ""
    upvotes: int = 0
    comments: int = 0
    url: str = ""
    sentiment: Sentiment = "neutral"


class RedditTopic(BaseModel):
    topic: str
    questions: list[RedditInsight] = Field(default_factory=list)
    pain_points: list[str] = Field(default_factory=list)
    solution_requests: list[str] = Field(default_factory=list)
    popular_threads: int = 0
