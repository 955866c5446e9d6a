"""Batch article generation: topics in, researched and drafted articles out.

One run resolves its topics (or resumes a stored batch), then processes each
topic as a work item under the article concurrency cap:

    processing -> research (SERP + Reddit, cached, retried, throttled)
               -> sections (sequential LLM calls) -> article -> repository
               -> completed | failed

Every item ends in ``completed`` or ``failed``; a failure never stops the
rest of the batch.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from blogbatch.articles import ArticleRepository, open_article_repository
from blogbatch.cache import CacheManager, CacheStats
from blogbatch.config import Settings
from blogbatch.content import build_article, generate_sections
from blogbatch.content.sections import research_context
from blogbatch.errors import ResearchError, TopicLoadError
from blogbatch.llm import LLMProvider, get_provider
from blogbatch.parallel import ParallelProcessor, WorkItem
from blogbatch.progress import (
    ArticleStatus,
    BatchItem,
    BatchStats,
    ProgressStore,
    ProgressTracker,
    open_progress_store,
)
from blogbatch.ratelimit import RateLimiter
from blogbatch.research import RedditInsights, SerpResearch
from blogbatch.retry import RetryPolicy
from blogbatch.topics import Topic, TopicManager

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    count: int | None = None
    priority: str | None = None
    category: str | None = None
    topics: str | None = None
    topics_file: str | None = None
    resume: str | None = None


class BatchReport(BaseModel):
    batch_id: str
    success_count: int
    fail_count: int
    stats: BatchStats
    cache_stats: CacheStats


class GenerationResources:
    """Everything a run talks to, opened on enter and released on exit.

    Collaborators passed in are used as-is and left open; the ones built here
    from ``settings`` are closed on every exit path, including a failure
    halfway through ``__aenter__``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: CacheManager | None = None,
        limiter: RateLimiter | None = None,
        store: ProgressStore | None = None,
        llm: LLMProvider | None = None,
        serp: SerpResearch | None = None,
        reddit: RedditInsights | None = None,
        repository: ArticleRepository | None = None,
    ):
        self.settings = settings
        self.cache = cache
        self.limiter = limiter
        self.store = store
        self.llm = llm
        self.serp = serp
        self.reddit = reddit
        self.repository = repository
        self.tracker: ProgressTracker | None = None
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> "GenerationResources":
        s = self.settings
        async with AsyncExitStack() as stack:
            if self.repository is None:
                self.repository = await open_article_repository(s)
                stack.push_async_callback(self.repository.close)
            if self.store is None:
                self.store = await open_progress_store(s)
                stack.push_async_callback(self.store.close)
            if self.cache is None:
                self.cache = CacheManager(s.cache_dir)
            if self.limiter is None:
                self.limiter = RateLimiter()
            if self.llm is None:
                self.llm = get_provider(s.blogbatch_llm_provider, **s.llm_credentials())
            if self.serp is None:
                self.serp = SerpResearch(s.serpapi_key, llm=self.llm)
                stack.push_async_callback(self.serp.aclose)
            if self.reddit is None:
                self.reddit = RedditInsights()
                stack.push_async_callback(self.reddit.aclose)
            self.tracker = ProgressTracker(self.store)
            self._stack = stack.pop_all()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._stack is not None:
            stack, self._stack = self._stack, None
            await stack.aclose()


class ArticleGenerator:
    def __init__(
        self,
        resources: GenerationResources,
        settings: Settings,
        topic_manager: TopicManager | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.res = resources
        self.settings = settings
        self.topics = topic_manager or TopicManager(settings.topics_config_path)
        self.retry = retry or RetryPolicy(
            max_attempts=settings.blogbatch_retry_attempts,
            base_delay=settings.blogbatch_retry_base_delay,
        )

    @property
    def tracker(self) -> ProgressTracker:
        if self.res.tracker is None:
            raise RuntimeError("GenerationResources must be entered before running")
        return self.res.tracker

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run(self, options: GenerationOptions) -> BatchReport:
        cleaned = await self.res.cache.cleanup()
        logger.info("Cleaned %d expired cache entries", cleaned)

        if options.resume:
            batch_id, topics = await self._resume(options.resume)
        else:
            topics = self.resolve_topics(options)
            if not topics:
                raise TopicLoadError("No topics found matching the given filters")
            batch_id = await self.tracker.create_batch(
                [BatchItem(id=t.id, topic=t.topic, payload=t.to_json_dict()) for t in topics],
                meta={k: v for k, v in asdict(options).items() if v is not None},
            )

        logger.info("Batch %s: %d article(s) to generate", batch_id, len(topics))
        processor = ParallelProcessor(max_concurrency=self.settings.blogbatch_article_concurrency)
        results = await processor.execute_parallel(
            [WorkItem(id=t.id, fn=self._article_task(batch_id, t)) for t in topics],
            continue_on_error=True,
        )

        return BatchReport(
            batch_id=batch_id,
            success_count=len(ParallelProcessor.get_successful(results)),
            fail_count=len(ParallelProcessor.get_failed(results)),
            stats=await self.tracker.get_stats(batch_id),
            cache_stats=await self.res.cache.stats(),
        )

    def resolve_topics(self, options: GenerationOptions) -> list[Topic]:
        if options.topics:
            topics = self.topics.load_from_cli(options.topics)
        elif options.topics_file:
            topics = self.topics.load_from_file(options.topics_file)
        else:
            topics = self.topics.load_from_config()
        return self.topics.filter_topics(
            topics,
            priority=options.priority,
            category=options.category,
            max_count=options.count,
        )

    async def _resume(self, batch_id: str) -> tuple[str, list[Topic]]:
        batch = await self.tracker.get_batch(batch_id)
        pending = {a.id for a in await self.tracker.get_pending_articles(batch_id)}
        topics = [Topic.model_validate(item.payload) for item in batch.items if item.id in pending]
        logger.info("Resuming batch %s: %d of %d item(s) left", batch_id, len(topics), len(batch.items))
        return batch_id, topics

    # ------------------------------------------------------------------
    # Single article
    # ------------------------------------------------------------------

    def _article_task(self, batch_id: str, topic: Topic) -> Callable[[], Awaitable[str]]:
        return lambda: self.generate_article(batch_id, topic)

    async def generate_article(self, batch_id: str, topic: Topic) -> str:
        """Run one topic to a terminal status and return the saved article's id."""
        logger.info("Generating: %s", topic.topic)
        try:
            await self.tracker.update_article(batch_id, topic.id, ArticleStatus.PROCESSING)

            serp, community = await self.research(topic)
            sections = await generate_sections(
                topic,
                self.res.llm,
                self.res.limiter,
                delay=self.settings.blogbatch_section_delay,
                context=research_context(serp, community),
                retry=self.retry,
            )
            article = build_article(topic, "\n\n".join(sections))
            article_id = await self.res.repository.save(article)

            await self.tracker.update_article(
                batch_id, topic.id, ArticleStatus.COMPLETED, article_ref=article_id
            )
        except Exception as e:
            logger.error("Failed to generate %r: %s", topic.topic, e)
            await self._mark_failed(batch_id, topic, e)
            raise
        logger.info("Saved %r as %s", topic.topic, article_id)
        return article_id

    async def _mark_failed(self, batch_id: str, topic: Topic, error: Exception) -> None:
        try:
            await self.tracker.update_article(batch_id, topic.id, ArticleStatus.FAILED, error=str(error))
        except Exception as e:
            logger.error("Could not record failure of %s in %s: %s", topic.id, batch_id, e)

    async def research(self, topic: Topic) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
        """SERP and Reddit research for ``topic``, run side by side."""
        keyword = topic.primary_keyword
        s = self.settings
        tasks = [
            WorkItem(
                id="serp",
                fn=lambda: self._cached_call(
                    "serp", keyword, "serpapi", lambda: self.res.serp.get_keyword_data(keyword), s.blogbatch_serp_ttl
                ),
            ),
            WorkItem(
                id="reddit",
                fn=lambda: self._cached_call(
                    "reddit", keyword, "reddit", lambda: self.res.reddit.get_topic_insights(keyword), s.blogbatch_reddit_ttl
                ),
            ),
        ]
        processor = ParallelProcessor(max_concurrency=s.blogbatch_research_concurrency)
        results = await processor.execute_all_settled(tasks)

        failures = {r.id: r.error_message or "unknown error" for r in results if not r.success}
        if failures:
            if s.blogbatch_require_research:
                raise ResearchError(failures)
            logger.warning("Continuing %r without research: %s", topic.topic, failures)
        data = {r.id: r.data for r in results if r.success}
        return data.get("serp"), data.get("reddit")

    async def _cached_call(
        self,
        namespace: str,
        key: str,
        service: str,
        fetch: Callable[[], Awaitable[BaseModel]],
        ttl: float,
    ) -> dict[str, Any]:
        cached = await self.res.cache.get(namespace, key)
        if cached is not None:
            logger.debug("Cache hit %s/%s", namespace, key)
            return cached
        result = await self.retry.run(
            lambda: self.res.limiter.execute(service, fetch),
            label=f"{namespace} research",
        )
        data = result.model_dump(mode="json")
        await self.res.cache.set(namespace, key, data, ttl)
        return data
