"""Keyword research: SerpAPI when a key is configured, otherwise an LLM estimate."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from blogbatch.llm.base import JSON_INSTRUCTION, LLMProvider
from blogbatch.research.models import CompetitorData, FeaturedSnippet, KeywordEstimate, SERPData

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"

# total_results thresholds -> estimated monthly search volume
_VOLUME_BANDS = [
    (1_000_000_000, 100_000),
    (100_000_000, 50_000),
    (10_000_000, 10_000),
    (1_000_000, 5_000),
]


def default_related_keywords(keyword: str) -> list[str]:
    return [f"{keyword} {suffix}" for suffix in ("checklist", "cost", "timeline", "requirements", "implementation")]


def default_questions(keyword: str) -> list[str]:
    return [
        f"What is {keyword}?",
        f"How much does {keyword} cost?",
        f"How long does {keyword} take?",
    ]


def fallback_data(keyword: str) -> SERPData:
    return SERPData(
        keyword=keyword,
        related_keywords=default_related_keywords(keyword),
        questions=default_questions(keyword),
    )


def estimate_metrics(keyword: str, total_results: int) -> tuple[int, str, float]:
    """Rough volume / competition / CPC from Google's result count."""
    volume = 1000
    for threshold, band in _VOLUME_BANDS:
        if total_results > threshold:
            volume = band
            break
    if total_results > 500_000_000:
        competition = "high"
    elif total_results < 50_000_000:
        competition = "low"
    else:
        competition = "medium"
    lowered = keyword.lower()
    cpc = 15.0 if "cost" in lowered or "price" in lowered else 5.0
    return volume, competition, cpc


def _domain(url: str) -> str:
    return urlparse(url).hostname or ""


class SerpResearch:
    """Keyword data for article research.

    SerpAPI errors propagate so the caller's retry policy and research
    requirement decide what happens. Without an API key the LLM is asked for
    an estimate; if that answer is unusable, static defaults are returned.
    """

    def __init__(
        self,
        api_key: str | None,
        llm: LLMProvider | None = None,
        client: httpx.AsyncClient | None = None,
        location: str = "United States",
        timeout: float = 30.0,
    ):
        self.api_key = api_key or ""
        self.llm = llm
        self.location = location
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        if not self.api_key:
            logger.warning("SERPAPI_KEY not set - keyword research will use the LLM fallback")

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def get_keyword_data(self, keyword: str) -> SERPData:
        if self.api_key:
            return await self._serpapi_data(keyword)
        return await self._llm_data(keyword)

    async def _search(self, keyword: str, **params: Any) -> dict[str, Any]:
        query = {"engine": "google", "q": keyword, "api_key": self.api_key, "hl": "en", "gl": "us", **params}
        response = await self._client.get(SERPAPI_URL, params=query)
        response.raise_for_status()
        return response.json()

    async def _serpapi_data(self, keyword: str) -> SERPData:
        logger.info("Fetching SERP data for: %s", keyword)
        data = await self._search(keyword, location=self.location, num=10)

        competitors = [
            CompetitorData(
                url=r["link"],
                title=r.get("title", ""),
                position=index + 1,
                domain=_domain(r["link"]),
                snippet=r.get("snippet", ""),
            )
            for index, r in enumerate((data.get("organic_results") or [])[:10])
            if r.get("link")
        ]

        snippet_src = data.get("answer_box") or data.get("featured_snippet")
        featured = None
        if snippet_src:
            featured = FeaturedSnippet(
                content=snippet_src.get("snippet") or "",
                source=snippet_src.get("link") or "",
                url=snippet_src.get("link") or "",
            )

        total = (data.get("search_information") or {}).get("total_results") or 0
        volume, competition, cpc = estimate_metrics(keyword, int(total))
        questions = [q["question"] for q in data.get("related_questions") or [] if q.get("question")][:10]
        related = [q["query"] for q in data.get("related_searches") or data.get("related_queries") or [] if q.get("query")][:10]

        result = SERPData(
            keyword=keyword,
            search_volume=volume,
            competition=competition,
            cpc=cpc,
            related_keywords=related,
            questions=questions,
            top_competitors=competitors,
            featured_snippet=featured,
        )
        logger.info(
            "SERP data for %r: volume=%d competition=%s competitors=%d questions=%d",
            keyword, volume, competition, len(competitors), len(questions),
        )
        return result

    async def _llm_data(self, keyword: str) -> SERPData:
        if self.llm is None:
            logger.warning("No LLM configured for keyword research, using fallback data")
            return fallback_data(keyword)

        prompt = (
            f'Research the keyword "{keyword}" for SEO and content strategy.\n\n'
            "Provide JSON with: search_volume (integer estimate 1k-100k), "
            'competition ("low" | "medium" | "high"), cpc (number, USD), '
            "related_keywords (list of strings), questions (list of strings people ask).\n"
            "Focus on realistic estimates and buyer-intent keywords (cost, tools, pricing, consultant).\n\n"
            f"{JSON_INSTRUCTION}"
        )
        try:
            estimate = await self.llm.complete_structured(prompt, KeywordEstimate, temperature=0.3)
        except (ValueError, ValidationError) as e:
            logger.warning("LLM keyword estimate unusable (%s), using fallback data", e)
            return fallback_data(keyword)

        return SERPData(
            keyword=keyword,
            search_volume=estimate.search_volume,
            competition=estimate.competition,
            cpc=estimate.cpc,
            related_keywords=estimate.related_keywords or default_related_keywords(keyword),
            questions=estimate.questions or default_questions(keyword),
        )
