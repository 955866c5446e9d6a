"""Tests for the file-based article repository."""

import json

import pytest

from blogbatch.articles import FileArticleRepository, open_article_repository
from blogbatch.content import HeadingBlock, build_article
from blogbatch.errors import ArticleStoreError, ContentBlockError
from blogbatch.topics import Topic

pytestmark = pytest.mark.anyio


def _article(title="HIPAA Risk Assessment", body="## Conclusion\n\nDone."):
    topic = Topic(id="t", topic=title, primary_keyword="hipaa risk", priority=1)
    return build_article(topic, body)


async def test_save_writes_one_file_per_slug(tmp_path):
    repo = FileArticleRepository(tmp_path / "articles")
    article_id = await repo.save(_article())
    path = tmp_path / "articles" / "hipaa-risk-assessment.json"
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["id"] == article_id
    assert doc["content"] == [
        {"type": "heading", "level": 2, "content": "Conclusion"},
        {"type": "paragraph", "content": "Done."},
    ]


async def test_resave_replaces_and_keeps_id(tmp_path):
    repo = FileArticleRepository(tmp_path)
    first = await repo.save(_article(body="Old text."))
    second = await repo.save(_article(body="New text."))
    assert first == second
    loaded = await repo.load("hipaa-risk-assessment")
    assert loaded.excerpt == "New text."
    assert [p.name for p in tmp_path.iterdir()] == ["hipaa-risk-assessment.json"]


async def test_load_missing_returns_none(tmp_path):
    assert await FileArticleRepository(tmp_path).load("nothing-here") is None


async def test_empty_slug_rejected(tmp_path):
    with pytest.raises(ArticleStoreError):
        await FileArticleRepository(tmp_path).save(_article(title="!!!"))


async def test_factory_uses_files_without_database(settings):
    repo = await open_article_repository(settings)
    assert isinstance(repo, FileArticleRepository)
    await repo.close()


async def test_load_revalidates_stored_blocks(tmp_path):
    repo = FileArticleRepository(tmp_path)
    await repo.save(_article())
    loaded = await repo.load("hipaa-risk-assessment")
    assert isinstance(loaded.content[0], HeadingBlock)

    path = tmp_path / "hipaa-risk-assessment.json"
    doc = json.loads(path.read_text(encoding="utf-8"))
    doc["content"] = [{"type": "heading", "level": 7, "content": "Too deep"}]
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ContentBlockError):
        await repo.load("hipaa-risk-assessment")


async def test_load_unreadable_file_raises_store_error(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ArticleStoreError, match="broken"):
        await FileArticleRepository(tmp_path).load("broken")
