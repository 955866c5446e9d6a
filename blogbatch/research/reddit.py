"""Community questions and pain points from Reddit's public JSON search."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from blogbatch.research.models import RedditInsight, RedditTopic, Sentiment

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.reddit.com/search.json"
USER_AGENT = "blogbatch/0.1 (article research)"

_NEGATIVE = ("problem", "issue", "failed", "difficult", "struggling", "help")
_POSITIVE = ("solved", "success", "easy", "great", "helped", "works")
_PAIN_MARKERS = ("problem", "issue", "difficulty", "struggle")
_REQUEST_MARKERS = ("help", "how to", "guide", "recommendation")


def analyze_sentiment(text: str) -> Sentiment:
    lowered = text.lower()
    negative = sum(1 for w in _NEGATIVE if w in lowered)
    positive = sum(1 for w in _POSITIVE if w in lowered)
    if negative > positive:
        return "negative"
    if positive > negative:
        return "positive"
    return "neutral"


def _to_insight(post: dict[str, Any]) -> RedditInsight:
    data = post.get("data") or {}
    title = data.get("title") or ""
    return RedditInsight(
        question=title,
        subreddit=data.get("subreddit") or "",
        upvotes=data.get("ups") or 0,
        comments=data.get("num_comments") or 0,
        url=f"https://reddit.com{data.get('permalink', '')}",
        sentiment=analyze_sentiment(f"{title} {data.get('selftext') or ''}"),
    )


def _titles_with(insights: list[RedditInsight], markers: tuple[str, ...], limit: int = 10) -> list[str]:
    return [i.question for i in insights if any(m in i.question.lower() for m in markers)][:limit]


class RedditInsights:
    """HTTP errors propagate; the caller decides whether research is required."""

    def __init__(self, client: httpx.AsyncClient | None = None, user_agent: str = USER_AGENT, timeout: float = 30.0):
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.user_agent = user_agent

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def search(self, keyword: str, limit: int = 25) -> list[RedditInsight]:
        logger.info("Searching Reddit for: %s", keyword)
        response = await self._client.get(
            SEARCH_URL,
            params={"q": keyword, "limit": limit, "sort": "relevance", "t": "all"},
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        posts = ((response.json() or {}).get("data") or {}).get("children") or []
        # Only threads with some discussion
        insights = [i for i in map(_to_insight, posts) if i.upvotes > 0 or i.comments > 2]
        logger.info("Found %d relevant Reddit discussions", len(insights))
        return insights

    async def get_topic_insights(self, keyword: str) -> RedditTopic:
        questions = await self.search(keyword, limit=30)
        return RedditTopic(
            topic=keyword,
            questions=questions[:20],
            pain_points=_titles_with(questions, _PAIN_MARKERS),
            solution_requests=_titles_with(questions, _REQUEST_MARKERS),
            popular_threads=len(questions),
        )
