"""Per-service call throttle."""

from blogbatch.ratelimit.limiter import DEFAULT_LIMITS, RateLimitConfig, RateLimiter, ThrottleStats

__all__ = ["DEFAULT_LIMITS", "RateLimitConfig", "RateLimiter", "ThrottleStats"]
