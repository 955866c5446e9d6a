"""Cache entry schema (on-disk JSON body) and aggregate stats."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """One cached value: ``{"data": ..., "timestamp": <epoch ms>, "ttl": <ms>}``."""

    data: Any = None
    timestamp: int
    ttl: int

    def is_valid(self, at_ms: int | None = None) -> bool:
        now = now_ms() if at_ms is None else at_ms
        return now - self.timestamp < self.ttl


class CacheStats(BaseModel):
    total: int = 0
    expired: int = 0
    size: int = 0
