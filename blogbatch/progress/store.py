"""Batch progress storage: Postgres (preferred) or file-based fallback."""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Any, Protocol

import anyio
from pydantic import ValidationError

from blogbatch.config import Settings
from blogbatch.errors import ProgressPersistenceError
from blogbatch.progress.models import ArticleProgress, ArticleStatus, BatchItem, BatchProgress, utcnow

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ProgressStore(Protocol):
    async def create(self, batch: BatchProgress) -> None: ...
    async def load(self, batch_id: str) -> BatchProgress | None: ...
    async def get_article(self, batch_id: str, item_id: str) -> ArticleProgress | None: ...
    async def put_article(self, batch_id: str, article: ArticleProgress) -> None: ...
    async def list_batches(self) -> list[BatchProgress]: ...
    async def delete(self, batch_id: str) -> bool: ...
    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# File-based implementation
# ---------------------------------------------------------------------------

class FileProgressStore:
    """One JSON document per batch. Writes replace the whole file atomically.

    Callers serialize writes per batch (see ``ProgressTracker``); the store
    itself only guarantees that a reader never sees a half-written file.
    """

    def __init__(self, progress_dir: str | Path):
        self._dir = anyio.Path(progress_dir)
        Path(progress_dir).mkdir(parents=True, exist_ok=True)

    def _path(self, batch_id: str) -> anyio.Path:
        if not _SAFE_ID.match(batch_id):
            raise ProgressPersistenceError(f"Invalid batch id: {batch_id!r}")
        return self._dir / f"{batch_id}.json"

    async def _write(self, batch: BatchProgress) -> None:
        path = self._path(batch.batch_id)
        tmp = self._dir / f".{path.name}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            await tmp.write_text(batch.model_dump_json(indent=2), encoding="utf-8")
            await tmp.replace(path)
        except OSError as e:
            raise ProgressPersistenceError(f"Failed to save batch {batch.batch_id}: {e}") from e

    async def create(self, batch: BatchProgress) -> None:
        await self._write(batch)

    async def load(self, batch_id: str) -> BatchProgress | None:
        path = self._path(batch_id)
        try:
            if not await path.exists():
                return None
            return BatchProgress.model_validate_json(await path.read_bytes())
        except (OSError, ValidationError) as e:
            raise ProgressPersistenceError(f"Failed to load batch {batch_id}: {e}") from e

    async def get_article(self, batch_id: str, item_id: str) -> ArticleProgress | None:
        batch = await self.load(batch_id)
        return batch.find(item_id) if batch else None

    async def put_article(self, batch_id: str, article: ArticleProgress) -> None:
        batch = await self.load(batch_id)
        if batch is None:
            raise ProgressPersistenceError(f"Batch disappeared while updating: {batch_id}")
        batch.articles = [article if a.id == article.id else a for a in batch.articles]
        batch.updated_at = utcnow()
        await self._write(batch)

    async def list_batches(self) -> list[BatchProgress]:
        batches: list[BatchProgress] = []
        try:
            paths = [p async for p in self._dir.iterdir() if p.name.endswith(".json")]
        except OSError as e:
            raise ProgressPersistenceError(f"Failed to scan {self._dir}: {e}") from e
        for path in paths:
            try:
                batches.append(BatchProgress.model_validate_json(await path.read_bytes()))
            except (OSError, ValidationError) as e:
                logger.warning("Skipping unreadable batch file %s: %s", path.name, e)
        return batches

    async def delete(self, batch_id: str) -> bool:
        path = self._path(batch_id)
        try:
            if not await path.exists():
                return False
            await path.unlink()
            return True
        except OSError as e:
            raise ProgressPersistenceError(f"Failed to delete batch {batch_id}: {e}") from e

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

_ARTICLE_COLUMNS = "item_id, topic, status, started_at, completed_at, error, article_ref"


class PostgresProgressStore:
    """Persist batches in Postgres. Survives restarts; one row per progress record."""

    def __init__(self, conn: Any):
        self._conn = conn

    @classmethod
    async def connect(cls, database_url: str) -> "PostgresProgressStore":
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres progress store. pip install 'psycopg[binary]'"
            )
        try:
            conn = await psycopg.AsyncConnection.connect(database_url, autocommit=True)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS blogbatch_batches (
                    batch_id TEXT PRIMARY KEY,
                    items JSONB NOT NULL DEFAULT '[]',
                    config JSONB NOT NULL DEFAULT '{}',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS blogbatch_batch_articles (
                    batch_id TEXT NOT NULL REFERENCES blogbatch_batches (batch_id) ON DELETE CASCADE,
                    item_id TEXT NOT NULL,
                    position INT NOT NULL,
                    topic TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL,
                    started_at TIMESTAMPTZ,
                    completed_at TIMESTAMPTZ,
                    error TEXT,
                    article_ref TEXT,
                    PRIMARY KEY (batch_id, item_id)
                )
            """)
        except psycopg.Error as e:
            raise ProgressPersistenceError(f"Postgres progress store unavailable: {e}") from e
        return cls(conn)

    @staticmethod
    def _jsonb(value: Any) -> Any:
        from psycopg.types.json import Jsonb

        return Jsonb(value)

    async def _run(self, query: str, params: tuple = ()) -> Any:
        import psycopg

        try:
            return await self._conn.execute(query, params)
        except psycopg.Error as e:
            raise ProgressPersistenceError(f"Progress store query failed: {e}") from e

    async def create(self, batch: BatchProgress) -> None:
        """Insert the batch row and all its records in one transaction."""
        import psycopg

        items = [i.model_dump(mode="json") for i in batch.items]
        rows = [
            (
                batch.batch_id, article.id, position, article.topic, article.status.value,
                article.started_at, article.completed_at, article.error, article.article_ref,
            )
            for position, article in enumerate(batch.articles)
        ]
        try:
            async with self._conn.transaction():
                await self._conn.execute(
                    """
                    INSERT INTO blogbatch_batches (batch_id, items, config, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (batch.batch_id, self._jsonb(items), self._jsonb(batch.config), batch.created_at, batch.updated_at),
                )
                async with self._conn.cursor() as cur:
                    await cur.executemany(
                        """
                        INSERT INTO blogbatch_batch_articles
                        (batch_id, item_id, position, topic, status, started_at, completed_at, error, article_ref)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                        """,
                        rows,
                    )
        except psycopg.Error as e:
            raise ProgressPersistenceError(f"Failed to create batch {batch.batch_id}: {e}") from e

    async def load(self, batch_id: str) -> BatchProgress | None:
        cur = await self._run(
            "SELECT batch_id, items, config, created_at, updated_at FROM blogbatch_batches WHERE batch_id = %s",
            (batch_id,),
        )
        row = await cur.fetchone()
        if not row:
            return None
        cur = await self._run(
            f"SELECT {_ARTICLE_COLUMNS} FROM blogbatch_batch_articles WHERE batch_id = %s ORDER BY position",
            (batch_id,),
        )
        articles = [self._row_to_article(r) for r in await cur.fetchall()]
        return BatchProgress(
            batch_id=row[0],
            items=[BatchItem.model_validate(i) for i in (row[1] or [])],
            config=row[2] or {},
            created_at=row[3],
            updated_at=row[4],
            articles=articles,
        )

    async def get_article(self, batch_id: str, item_id: str) -> ArticleProgress | None:
        cur = await self._run(
            f"SELECT {_ARTICLE_COLUMNS} FROM blogbatch_batch_articles WHERE batch_id = %s AND item_id = %s",
            (batch_id, item_id),
        )
        row = await cur.fetchone()
        return self._row_to_article(row) if row else None

    async def put_article(self, batch_id: str, article: ArticleProgress) -> None:
        await self._run(
            """
            UPDATE blogbatch_batch_articles SET
                status = %s, started_at = %s, completed_at = %s, error = %s, article_ref = %s
            WHERE batch_id = %s AND item_id = %s
            """,
            (
                article.status.value, article.started_at, article.completed_at,
                article.error, article.article_ref, batch_id, article.id,
            ),
        )
        await self._run(
            "UPDATE blogbatch_batches SET updated_at = NOW() WHERE batch_id = %s",
            (batch_id,),
        )

    async def list_batches(self) -> list[BatchProgress]:
        cur = await self._run("SELECT batch_id FROM blogbatch_batches")
        batches = []
        for (batch_id,) in await cur.fetchall():
            batch = await self.load(batch_id)
            if batch:
                batches.append(batch)
        return batches

    async def delete(self, batch_id: str) -> bool:
        cur = await self._run("DELETE FROM blogbatch_batches WHERE batch_id = %s", (batch_id,))
        return cur.rowcount > 0

    async def close(self) -> None:
        await self._conn.close()

    @staticmethod
    def _row_to_article(row: Any) -> ArticleProgress:
        return ArticleProgress(
            id=row[0],
            topic=row[1],
            status=ArticleStatus(row[2]),
            started_at=row[3],
            completed_at=row[4],
            error=row[5],
            article_ref=row[6],
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

async def open_progress_store(settings: Settings) -> ProgressStore:
    """Return a progress store (Postgres if configured, else file-based). Caller closes it."""
    if settings.database_url:
        try:
            store = await PostgresProgressStore.connect(settings.database_url)
            logger.info("Using Postgres progress store")
            return store
        except (ImportError, ProgressPersistenceError) as e:
            logger.warning("Postgres progress store failed (%s), falling back to file store", e)
    logger.info("Using file-based progress store (%s)", settings.progress_dir)
    return FileProgressStore(settings.progress_dir)
