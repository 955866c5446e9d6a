"""TTL-based disk cache for research results."""

from blogbatch.cache.manager import CacheManager
from blogbatch.cache.models import CacheEntry, CacheStats

__all__ = ["CacheManager", "CacheEntry", "CacheStats"]
