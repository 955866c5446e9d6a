"""Published article storage: Postgres ``articles`` table or file-based fallback."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Protocol

import anyio

from blogbatch.config import Settings
from blogbatch.content.article import Article
from blogbatch.content.blocks import dump_blocks, parse_blocks
from blogbatch.errors import ArticleStoreError

logger = logging.getLogger(__name__)


class ArticleRepository(Protocol):
    async def save(self, article: Article) -> str:
        """Persist ``article`` (replacing any article with the same slug); return its id."""
        ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

_COLUMNS = (
    "slug", "title", "author", "author_avatar", "image", "image_alt", "category", "tags",
    "excerpt", "content", "read_time", "featured", "meta_title", "meta_description",
    "focus_keyword", "keywords", "schema_data", "internal_links", "external_links",
)


class PostgresArticleRepository:
    """Persist articles in the blog's ``articles`` table. Re-saving a slug replaces the row."""

    def __init__(self, conn: Any):
        self._conn = conn

    @classmethod
    async def connect(cls, database_url: str) -> "PostgresArticleRepository":
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres article repository. pip install 'psycopg[binary]'"
            )
        try:
            conn = await psycopg.AsyncConnection.connect(database_url, autocommit=True)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS articles (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    slug VARCHAR(255) UNIQUE NOT NULL,
                    title VARCHAR(500) NOT NULL,
                    author VARCHAR(255) NOT NULL,
                    author_avatar VARCHAR(500),
                    published_date TIMESTAMPTZ DEFAULT NOW(),
                    updated_date TIMESTAMPTZ DEFAULT NOW(),
                    image VARCHAR(500),
                    image_alt VARCHAR(500),
                    category VARCHAR(100),
                    tags TEXT[],
                    excerpt TEXT,
                    content JSONB NOT NULL,
                    read_time VARCHAR(50),
                    featured BOOLEAN DEFAULT false,
                    meta_title VARCHAR(60),
                    meta_description VARCHAR(155),
                    focus_keyword VARCHAR(100),
                    keywords TEXT[],
                    schema_data JSONB,
                    internal_links TEXT[],
                    external_links TEXT[]
                )
            """)
        except psycopg.Error as e:
            raise ArticleStoreError(f"Article database unavailable: {e}") from e
        return cls(conn)

    async def save(self, article: Article) -> str:
        import psycopg
        from psycopg.types.json import Jsonb

        row = article.model_dump(mode="json")
        row["content"] = Jsonb(dump_blocks(article.content))
        row["schema_data"] = Jsonb(row["schema_data"])
        row["focus_keyword"] = row["focus_keyword"][:100]
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        try:
            async with self._conn.transaction():
                await self._conn.execute("DELETE FROM articles WHERE slug = %s", (article.slug,))
                cur = await self._conn.execute(
                    f"INSERT INTO articles ({', '.join(_COLUMNS)}) VALUES ({placeholders}) RETURNING id",
                    tuple(row[c] for c in _COLUMNS),
                )
                (article_id,) = await cur.fetchone()
        except psycopg.Error as e:
            raise ArticleStoreError(f"Failed to save article {article.slug}: {e}") from e
        return str(article_id)

    async def close(self) -> None:
        await self._conn.close()


# ---------------------------------------------------------------------------
# File-based implementation
# ---------------------------------------------------------------------------

class FileArticleRepository:
    """One JSON file per slug. The id is kept across re-saves of the same slug."""

    def __init__(self, articles_dir: str | Path):
        Path(articles_dir).mkdir(parents=True, exist_ok=True)
        self._dir = anyio.Path(articles_dir)

    def _path(self, slug: str) -> anyio.Path:
        if not slug or "/" in slug or slug.startswith("."):
            raise ArticleStoreError(f"Invalid article slug: {slug!r}")
        return self._dir / f"{slug}.json"

    async def save(self, article: Article) -> str:
        path = self._path(article.slug)
        try:
            article_id = await self._existing_id(path) or str(uuid.uuid4())
            payload = {"id": article_id, **article.model_dump(mode="json"), "content": dump_blocks(article.content)}
            tmp = self._dir / f".{path.name}.{uuid.uuid4().hex[:8]}.tmp"
            await tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            await tmp.replace(path)
        except OSError as e:
            raise ArticleStoreError(f"Failed to save article {article.slug}: {e}") from e
        return article_id

    async def load(self, slug: str) -> Article | None:
        """Read an article back. Stored content blocks are re-validated (``ContentBlockError``)."""
        path = self._path(slug)
        try:
            if not await path.exists():
                return None
            data = json.loads(await path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ArticleStoreError(f"Failed to read article {slug}: {e}") from e
        data.pop("id", None)
        data["content"] = parse_blocks(data.get("content", []))
        return Article.model_validate(data)

    @staticmethod
    async def _existing_id(path: anyio.Path) -> str | None:
        if not await path.exists():
            return None
        try:
            return json.loads(await path.read_text(encoding="utf-8")).get("id")
        except ValueError:
            return None

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

async def open_article_repository(settings: Settings) -> ArticleRepository:
    """Postgres when DATABASE_URL is set (connection failure is fatal), else file-based."""
    if settings.database_url:
        try:
            repo = await PostgresArticleRepository.connect(settings.database_url)
        except ImportError as e:
            raise ArticleStoreError(str(e)) from e
        logger.info("Saving articles to Postgres")
        return repo
    logger.info("Saving articles to %s", settings.articles_dir)
    return FileArticleRepository(settings.articles_dir)
