"""Pytest configuration and shared fixtures: in-process fakes for every external service."""

import json
from pathlib import Path

import pytest

from blogbatch.config import Settings
from blogbatch.research.models import RedditInsight, RedditTopic, SERPData

SECTION_BODY = (
    "This section explains the topic in plain terms. It covers what teams need to know.\n\n"
    "- First point\n"
    "- Second point"
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeLLM:
    """Records prompts; every completion returns a short markdown body."""

    service_name = "fake-llm"

    def __init__(self, fail_on: str | None = None):
        self.prompts: list[str] = []
        self.fail_on = fail_on

    async def complete(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        if self.fail_on and self.fail_on in prompt:
            raise RuntimeError("model refused")
        return SECTION_BODY

    async def complete_structured(self, prompt: str, schema, **kwargs):
        self.prompts.append(prompt)
        return schema()


class FakeSerp:
    def __init__(self, fail_keywords: set[str] | None = None):
        self.fail_keywords = set(fail_keywords or ())
        self.calls: list[str] = []

    async def get_keyword_data(self, keyword: str) -> SERPData:
        self.calls.append(keyword)
        if keyword in self.fail_keywords:
            raise RuntimeError(f"SERP quota exhausted for {keyword}")
        return SERPData(keyword=keyword, questions=[f"What is {keyword}?"], related_keywords=[f"{keyword} cost"])


class FakeReddit:
    def __init__(self):
        self.calls: list[str] = []

    async def get_topic_insights(self, keyword: str) -> RedditTopic:
        self.calls.append(keyword)
        return RedditTopic(
            topic=keyword,
            questions=[RedditInsight(question=f"Problem with {keyword}", upvotes=3)],
            pain_points=[f"Problem with {keyword}"],
            popular_threads=1,
        )


class FakeRepository:
    def __init__(self):
        self.saved: dict[str, object] = {}

    async def save(self, article) -> str:
        self.saved[article.slug] = article
        return f"article-{len(self.saved)}"

    async def close(self) -> None:
        pass


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        blogbatch_data_dir=str(tmp_path / "data"),
        database_url=None,
        serpapi_key=None,
        gemini_api_key=None,
        blogbatch_section_delay=0,
        blogbatch_article_concurrency=2,
        blogbatch_retry_attempts=1,
    )
    s.ensure_dirs()
    return s


@pytest.fixture
def topics_file(tmp_path) -> Path:
    """Three valid topics with priorities 1..3."""
    path = tmp_path / "topics.json"
    path.write_text(
        json.dumps(
            {
                "highValueTopics": [
                    {"id": "t1", "topic": "SOC 2 Audit Checklist", "primaryKeyword": "soc 2 checklist", "priority": 1},
                    {"id": "t2", "topic": "HIPAA Risk Assessment", "primaryKeyword": "hipaa risk", "priority": 2},
                    {"id": "t3", "topic": "GDPR Data Mapping", "primaryKeyword": "gdpr mapping", "priority": 3},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path
