"""End-to-end tests for batch generation with in-process fakes."""

import pytest

from blogbatch.articles import FileArticleRepository
from blogbatch.cache import CacheManager
from blogbatch.errors import BatchNotFoundError, TopicLoadError
from blogbatch.generator import ArticleGenerator, GenerationOptions, GenerationResources
from blogbatch.progress import ArticleStatus, FileProgressStore
from blogbatch.ratelimit import RateLimiter
from blogbatch.retry import NO_RETRY

from conftest import FakeLLM, FakeReddit, FakeRepository, FakeSerp

pytestmark = pytest.mark.anyio


@pytest.fixture
def fakes():
    return {
        "llm": FakeLLM(),
        "serp": FakeSerp(fail_keywords={"hipaa risk"}),
        "reddit": FakeReddit(),
        "repository": FakeRepository(),
    }


def _resources(settings, fakes):
    return GenerationResources(
        settings,
        cache=CacheManager(settings.cache_dir),
        limiter=RateLimiter(),
        store=FileProgressStore(settings.progress_dir),
        **fakes,
    )


async def _run(settings, fakes, options):
    async with _resources(settings, fakes) as resources:
        return await ArticleGenerator(resources, settings, retry=NO_RETRY).run(options)


async def test_batch_with_one_research_failure(settings, fakes, topics_file):
    report = await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file)))

    assert report.success_count == 2
    assert report.fail_count == 1
    assert (report.stats.total, report.stats.completed, report.stats.failed) == (3, 2, 1)
    assert report.stats.completion_percentage == 67
    assert sorted(fakes["repository"].saved) == ["gdpr-data-mapping", "soc-2-audit-checklist"]
    # 2 successful SERP lookups + 3 Reddit lookups
    assert report.cache_stats.total == 5

    async with _resources(settings, fakes) as resources:
        batch = await resources.tracker.get_batch(report.batch_id)
    failed = batch.find("t2")
    assert failed.status == ArticleStatus.FAILED
    assert "SERP quota exhausted" in failed.error
    assert batch.find("t1").article_ref is not None


async def test_resume_processes_only_unfinished(settings, fakes, topics_file):
    first = await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file)))
    fakes["serp"].fail_keywords.clear()
    fakes["repository"].saved.clear()
    fakes["serp"].calls.clear()

    second = await _run(settings, fakes, GenerationOptions(resume=first.batch_id))

    assert second.batch_id == first.batch_id
    assert (second.success_count, second.fail_count) == (1, 0)
    assert list(fakes["repository"].saved) == ["hipaa-risk-assessment"]
    assert fakes["serp"].calls == ["hipaa risk"]
    assert second.stats.completed == 3
    assert second.stats.completion_percentage == 100


async def test_research_optional(settings, fakes, topics_file):
    settings.blogbatch_require_research = False
    report = await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file)))
    assert report.success_count == 3
    assert report.stats.failed == 0


async def test_cached_research_is_reused(settings, fakes, topics_file):
    options = GenerationOptions(topics_file=str(topics_file), priority="1")
    await _run(settings, fakes, options)
    await _run(settings, fakes, options)
    assert fakes["serp"].calls == ["soc 2 checklist"]
    assert fakes["reddit"].calls == ["soc 2 checklist"]


async def test_filters_apply(settings, fakes, topics_file):
    report = await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file), priority="2-3", count=1))
    assert report.stats.total == 1
    assert report.fail_count == 1


async def test_cli_topics(settings, fakes):
    report = await _run(settings, fakes, GenerationOptions(topics="Vendor risk reviews,Access control policy"))
    assert report.success_count == 2
    assert sorted(fakes["repository"].saved) == ["access-control-policy", "vendor-risk-reviews"]


async def test_no_matching_topics_is_fatal(settings, fakes, topics_file):
    with pytest.raises(TopicLoadError):
        await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file), category="nothing"))
    async with _resources(settings, fakes) as resources:
        assert await resources.tracker.list_batches() == []


async def test_unknown_resume_id(settings, fakes):
    with pytest.raises(BatchNotFoundError):
        await _run(settings, fakes, GenerationOptions(resume="batch-20240101-000000-0000"))


async def test_repository_failure_marks_item_failed(settings, fakes, topics_file):
    async def broken_save(article):
        raise OSError("disk full")

    fakes["repository"].save = broken_save
    fakes["serp"].fail_keywords.clear()
    report = await _run(settings, fakes, GenerationOptions(topics_file=str(topics_file)))
    assert report.fail_count == 3
    assert report.stats.failed == 3


async def test_resources_open_and_close_defaults(settings):
    async with GenerationResources(settings, llm=FakeLLM()) as resources:
        assert isinstance(resources.repository, FileArticleRepository)
        assert isinstance(resources.store, FileProgressStore)
        assert resources.tracker is not None
        serp_client = resources.serp._client
    assert serp_client.is_closed


async def test_resources_release_on_failed_enter(settings):
    # no Gemini key configured
    resources = GenerationResources(settings)
    with pytest.raises(ValueError):
        async with resources:
            pass
    assert resources.tracker is None
