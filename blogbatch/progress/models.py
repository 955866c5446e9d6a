"""Batch manifest and per-article progress records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArticleStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchItem(BaseModel):
    """Frozen manifest entry: item id plus the full topic payload needed to redo the work."""

    id: str
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)


class ArticleProgress(BaseModel):
    id: str
    topic: str = ""
    status: ArticleStatus = ArticleStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    article_ref: str | None = None


class BatchProgress(BaseModel):
    """A batch persisted across restarts until explicitly deleted."""

    batch_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    items: list[BatchItem] = Field(default_factory=list)
    articles: list[ArticleProgress] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)

    def find(self, item_id: str) -> ArticleProgress | None:
        for article in self.articles:
            if article.id == item_id:
                return article
        return None


class BatchStats(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    processing: int = 0
    completion_percentage: int = 0


class BatchSummary(BaseModel):
    batch_id: str
    created_at: datetime
    updated_at: datetime
    config: dict[str, Any]
    stats: BatchStats
