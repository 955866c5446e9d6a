"""Retry with exponential backoff, layered above the rate limiter.

Each attempt re-enters whatever ``fn`` wraps (typically
``RateLimiter.execute``), so retries are paced like any other call.
Only transient failures are retried: network errors, timeouts, HTTP 429 and
HTTP 5xx.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_MESSAGES = ("network", "timeout", "timed out", "rate limit", "too many requests", "overloaded")


def _status_code(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    # openai / anthropic / google-genai errors all expose one of these
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    status = _status_code(exc)
    if status is not None:
        return status == 429 or 500 <= status < 600
    message = str(exc).lower()
    return any(m in message for m in _RETRYABLE_MESSAGES)


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 16.0
    jitter: float = 1.0

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (attempt is zero-based)."""
        delay = min(self.base_delay * self.multiplier**attempt, self.max_delay)
        return delay + random.uniform(0, self.jitter) if self.jitter else delay

    async def run(self, fn: Callable[[], Awaitable[T]], label: str = "call") -> T:
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as e:
                if attempt + 1 >= self.max_attempts or not is_retryable(e):
                    raise
                delay = self.backoff(attempt)
                attempt += 1
                logger.warning(
                    "Retrying %s (attempt %d/%d) in %.1fs: %s",
                    label, attempt + 1, self.max_attempts, delay, e,
                )
                await asyncio.sleep(delay)


NO_RETRY = RetryPolicy(max_attempts=1)
