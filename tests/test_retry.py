"""Tests for the retry policy layered above the rate limiter."""

import httpx
import pytest

from blogbatch.ratelimit import RateLimitConfig, RateLimiter
from blogbatch.retry import NO_RETRY, RetryPolicy, is_retryable

pytestmark = pytest.mark.anyio


def _status_error(code):
    request = httpx.Request("GET", "https://serpapi.com/search.json")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))


class TestIsRetryable:

    def test_transient_errors(self):
        assert is_retryable(httpx.ConnectError("refused"))
        assert is_retryable(TimeoutError())
        assert is_retryable(_status_error(429))
        assert is_retryable(_status_error(503))
        assert is_retryable(RuntimeError("Rate limit exceeded"))

    def test_permanent_errors(self):
        assert not is_retryable(_status_error(404))
        assert not is_retryable(_status_error(401))
        assert not is_retryable(ValueError("bad json"))


def _flaky(failures, exc_factory, calls):
    async def fn():
        calls.append(1)
        if len(calls) <= failures:
            raise exc_factory()
        return "ok"

    return fn


async def test_retries_transient_then_succeeds():
    calls = []
    policy = RetryPolicy(max_attempts=3, base_delay=0.001, jitter=0)
    assert await policy.run(_flaky(2, lambda: httpx.ReadTimeout("slow"), calls)) == "ok"
    assert len(calls) == 3


async def test_gives_up_after_max_attempts():
    calls = []
    policy = RetryPolicy(max_attempts=2, base_delay=0.001, jitter=0)
    with pytest.raises(httpx.ReadTimeout):
        await policy.run(_flaky(5, lambda: httpx.ReadTimeout("slow"), calls))
    assert len(calls) == 2


async def test_permanent_error_not_retried():
    calls = []
    policy = RetryPolicy(max_attempts=5, base_delay=0.001, jitter=0)
    with pytest.raises(ValueError):
        await policy.run(_flaky(1, lambda: ValueError("bad"), calls))
    assert len(calls) == 1


async def test_no_retry_policy_runs_once():
    calls = []
    with pytest.raises(TimeoutError):
        await NO_RETRY.run(_flaky(1, TimeoutError, calls))
    assert len(calls) == 1


async def test_each_attempt_reenters_the_limiter():
    limiter = RateLimiter({"svc": RateLimitConfig(max_requests=10, window=60)})
    calls = []
    policy = RetryPolicy(max_attempts=3, base_delay=0.001, jitter=0)
    fn = _flaky(1, lambda: httpx.ConnectError("down"), calls)
    assert await policy.run(lambda: limiter.execute("svc", fn)) == "ok"
    assert limiter.get_stats("svc").recent_requests == 2


def test_backoff_is_capped():
    policy = RetryPolicy(base_delay=1, multiplier=2, max_delay=5, jitter=0)
    assert [policy.backoff(i) for i in range(4)] == [1, 2, 4, 5]
