"""External research: search-engine keyword data and community insights."""

from blogbatch.research.models import (
    CompetitorData,
    FeaturedSnippet,
    RedditInsight,
    RedditTopic,
    SERPData,
)
from blogbatch.research.reddit import RedditInsights
from blogbatch.research.serp import SerpResearch

__all__ = [
    "CompetitorData",
    "FeaturedSnippet",
    "RedditInsight",
    "RedditInsights",
    "RedditTopic",
    "SERPData",
    "SerpResearch",
]
