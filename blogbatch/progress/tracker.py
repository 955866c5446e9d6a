"""Resumable batch progress tracking on top of a ``ProgressStore``."""

from __future__ import annotations

import asyncio
import logging
import math
import secrets
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from blogbatch.errors import BatchNotFoundError
from blogbatch.progress.models import (
    ArticleProgress,
    ArticleStatus,
    BatchItem,
    BatchProgress,
    BatchStats,
    BatchSummary,
    utcnow,
)
from blogbatch.progress.store import ProgressStore

logger = logging.getLogger(__name__)

_RANK = {
    ArticleStatus.PENDING: 0,
    ArticleStatus.PROCESSING: 1,
    ArticleStatus.COMPLETED: 2,
    ArticleStatus.FAILED: 2,
}


def new_batch_id(now: datetime | None = None) -> str:
    """``batch-YYYYMMDD-HHMMSS-xxxx``: sortable by creation time, random suffix."""
    now = now or datetime.now()
    return f"batch-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(2)}"


def is_allowed_transition(current: ArticleStatus, new: ArticleStatus) -> bool:
    """pending -> processing -> completed|failed; failed may be re-admitted; completed is terminal."""
    if current == ArticleStatus.COMPLETED:
        return new == ArticleStatus.COMPLETED
    if current == ArticleStatus.FAILED:
        return new != ArticleStatus.PENDING
    return _RANK[new] >= _RANK[current]


def compute_stats(articles: Iterable[ArticleProgress]) -> BatchStats:
    counts = Counter(a.status for a in articles)
    total = sum(counts.values())
    completed = counts[ArticleStatus.COMPLETED]
    pct = math.floor(completed / total * 100 + 0.5) if total else 0
    return BatchStats(
        total=total,
        completed=completed,
        failed=counts[ArticleStatus.FAILED],
        pending=counts[ArticleStatus.PENDING],
        processing=counts[ArticleStatus.PROCESSING],
        completion_percentage=pct,
    )


class ProgressTracker:
    def __init__(self, store: ProgressStore):
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, batch_id: str) -> asyncio.Lock:
        return self._locks.setdefault(batch_id, asyncio.Lock())

    async def create_batch(
        self,
        items: Iterable[Mapping[str, Any] | BatchItem],
        meta: Mapping[str, Any] | None = None,
        batch_id: str | None = None,
    ) -> str:
        """Create a batch and return its id.

        Passing the id of an existing batch resumes it: the stored manifest and
        records are left untouched and the same id is returned.
        """
        if batch_id is not None:
            existing = await self._store.load(batch_id)
            if existing is not None:
                logger.info("Resuming batch %s", batch_id)
                return batch_id

        manifest = [i if isinstance(i, BatchItem) else BatchItem.model_validate(dict(i)) for i in items]
        batch = BatchProgress(
            batch_id=batch_id or new_batch_id(),
            items=manifest,
            articles=[ArticleProgress(id=i.id, topic=i.topic) for i in manifest],
            config=dict(meta or {}),
        )
        await self._store.create(batch)
        logger.info("Created batch %s with %d items", batch.batch_id, len(manifest))
        return batch.batch_id

    async def get_batch(self, batch_id: str) -> BatchProgress:
        batch = await self._store.load(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    async def exists(self, batch_id: str) -> bool:
        return await self._store.load(batch_id) is not None

    async def get_pending_articles(self, batch_id: str) -> list[ArticleProgress]:
        """Records still owed work: anything not completed (pending, failed, interrupted processing)."""
        batch = await self.get_batch(batch_id)
        return [a for a in batch.articles if a.status != ArticleStatus.COMPLETED]

    async def update_article(
        self,
        batch_id: str,
        item_id: str,
        status: ArticleStatus | str,
        error: str | None = None,
        article_ref: str | None = None,
    ) -> ArticleProgress:
        """Apply a status transition. Re-applying the current status changes nothing."""
        status = ArticleStatus(status)
        async with self._lock(batch_id):
            record = await self._store.get_article(batch_id, item_id)
            if record is None:
                if not await self.exists(batch_id):
                    raise BatchNotFoundError(batch_id)
                raise KeyError(f"Item {item_id!r} not in batch {batch_id}")

            if not is_allowed_transition(record.status, status):
                logger.warning(
                    "Ignoring %s -> %s for %s in %s", record.status.value, status.value, item_id, batch_id
                )
                return record
            if record.status == status and error is None and article_ref is None:
                return record

            now = utcnow()
            if status == ArticleStatus.PROCESSING and record.status != ArticleStatus.PROCESSING:
                record.started_at = now
                record.completed_at = None
                record.error = None
            if status in (ArticleStatus.COMPLETED, ArticleStatus.FAILED) and record.status != status:
                record.completed_at = now
            if status == ArticleStatus.COMPLETED:
                record.error = None
            record.status = status
            if error is not None:
                record.error = error
            if article_ref is not None:
                record.article_ref = article_ref

            await self._store.put_article(batch_id, record)
            return record

    async def get_stats(self, batch_id: str) -> BatchStats:
        batch = await self.get_batch(batch_id)
        return compute_stats(batch.articles)

    async def get_summary(self, batch_id: str) -> BatchSummary:
        batch = await self.get_batch(batch_id)
        return BatchSummary(
            batch_id=batch.batch_id,
            created_at=batch.created_at,
            updated_at=batch.updated_at,
            config=batch.config,
            stats=compute_stats(batch.articles),
        )

    async def list_batches(self) -> list[BatchProgress]:
        """All batches, newest first."""
        batches = await self._store.list_batches()
        return sorted(batches, key=lambda b: b.created_at, reverse=True)

    async def delete_batch(self, batch_id: str) -> bool:
        self._locks.pop(batch_id, None)
        return await self._store.delete(batch_id)

    async def cleanup(self, older_than_days: float = 7) -> int:
        """Delete batches not updated for ``older_than_days``; return how many."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        cleaned = 0
        for batch in await self._store.list_batches():
            if batch.updated_at < cutoff and await self.delete_batch(batch.batch_id):
                cleaned += 1
        return cleaned
