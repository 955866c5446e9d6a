"""Sliding-window rate limiter keyed by external service name.

Calls that share a service name wait for a free slot in that service's window
(and, optionally, a minimum spacing since the previous call). Waiters are
admitted in FIFO order. Different services are tracked independently and never
block each other. Calls are paced, never dropped, and never retried here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict, deque
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitConfig(BaseModel):
    """At most ``max_requests`` calls per ``window`` seconds."""

    max_requests: int = Field(ge=1)
    window: float = Field(gt=0)
    min_interval: float = Field(default=0.0, ge=0)


class ThrottleStats(BaseModel):
    queue_length: int
    recent_requests: int
    can_make_request: bool
    delay_until_next_request: float


DEFAULT_LIMITS: dict[str, RateLimitConfig] = {
    "gemini": RateLimitConfig(max_requests=15, window=60.0),
    "openai": RateLimitConfig(max_requests=60, window=60.0),
    "anthropic": RateLimitConfig(max_requests=50, window=60.0),
    "serpapi": RateLimitConfig(max_requests=10, window=60.0),
    "reddit": RateLimitConfig(max_requests=60, window=60.0),
}


class RateLimiter:
    """Share one instance per pipeline run; call ``execute(service, fn)``."""

    def __init__(self, configs: dict[str, RateLimitConfig] | None = None):
        self._configs: dict[str, RateLimitConfig] = dict(DEFAULT_LIMITS)
        if configs:
            self._configs.update(configs)
        self._timestamps: dict[str, deque[float]] = defaultdict(deque)
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiting: dict[str, int] = defaultdict(int)

    def set_config(self, service: str, config: RateLimitConfig) -> None:
        self._configs[service] = config

    def get_config(self, service: str) -> RateLimitConfig | None:
        return self._configs.get(service)

    async def execute(self, service: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Wait for a slot for ``service`` then await ``fn()``; its errors propagate as-is."""
        await self._acquire(service)
        return await fn()

    async def _acquire(self, service: str) -> None:
        config = self._configs.get(service)
        if config is None:
            return
        lock = self._locks.setdefault(service, asyncio.Lock())
        self._waiting[service] += 1
        try:
            async with lock:
                while True:
                    delay = self._delay_until_slot(service, config, time.monotonic())
                    if delay <= 0:
                        break
                    logger.debug("Throttling %s for %.2fs", service, delay)
                    await asyncio.sleep(delay)
                self._timestamps[service].append(time.monotonic())
        finally:
            self._waiting[service] -= 1

    def _prune(self, service: str, config: RateLimitConfig, now: float) -> deque[float]:
        stamps = self._timestamps[service]
        window_start = now - config.window
        while stamps and stamps[0] <= window_start:
            stamps.popleft()
        return stamps

    def _delay_until_slot(self, service: str, config: RateLimitConfig, now: float) -> float:
        stamps = self._prune(service, config, now)
        delay = 0.0
        if len(stamps) >= config.max_requests:
            delay = stamps[0] + config.window - now
        if config.min_interval and stamps:
            delay = max(delay, stamps[-1] + config.min_interval - now)
        return max(0.0, delay)

    def get_queue_length(self, service: str) -> int:
        return self._waiting.get(service, 0)

    def get_stats(self, service: str) -> ThrottleStats:
        config = self._configs.get(service)
        now = time.monotonic()
        if config is None:
            return ThrottleStats(
                queue_length=self.get_queue_length(service),
                recent_requests=len(self._timestamps.get(service, ())),
                can_make_request=True,
                delay_until_next_request=0.0,
            )
        delay = self._delay_until_slot(service, config, now)
        return ThrottleStats(
            queue_length=self.get_queue_length(service),
            recent_requests=len(self._timestamps[service]),
            can_make_request=delay <= 0,
            delay_until_next_request=delay,
        )
