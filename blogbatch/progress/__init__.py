"""Batch creation, per-article status and resume support."""

from blogbatch.progress.models import (
    ArticleProgress,
    ArticleStatus,
    BatchItem,
    BatchProgress,
    BatchStats,
    BatchSummary,
)
from blogbatch.progress.store import (
    FileProgressStore,
    PostgresProgressStore,
    ProgressStore,
    open_progress_store,
)
from blogbatch.progress.tracker import ProgressTracker, compute_stats, is_allowed_transition, new_batch_id

__all__ = [
    "ArticleProgress",
    "ArticleStatus",
    "BatchItem",
    "BatchProgress",
    "BatchStats",
    "BatchSummary",
    "FileProgressStore",
    "PostgresProgressStore",
    "ProgressStore",
    "ProgressTracker",
    "compute_stats",
    "is_allowed_transition",
    "new_batch_id",
    "open_progress_store",
]
