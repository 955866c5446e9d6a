"""Namespace-prefixed, content-addressed JSON cache with lazy TTL expiry.

Each entry lives in its own file ``<namespace>-<sha256(key)>.json`` inside the
cache directory. The cache is best-effort: every I/O or parse failure is logged
and turned into a miss (reads) or a no-op (writes), so losing the cache never
stops the generation pipeline.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any

import anyio

from blogbatch.cache.models import CacheEntry, CacheStats, now_ms

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".json"
_DIGEST_LEN = 64


class CacheManager:
    """Async file-backed TTL cache."""

    def __init__(self, cache_dir: str | Path = "data/cache", enabled: bool = True):
        self._dir = anyio.Path(cache_dir)
        self._enabled = enabled
        self._dir_ready = False

    @property
    def cache_dir(self) -> Path:
        return Path(str(self._dir))

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def entry_name(namespace: str, key: str) -> str:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return f"{namespace}-{digest}{ENTRY_SUFFIX}"

    def _entry_path(self, namespace: str, key: str) -> anyio.Path:
        return self._dir / self.entry_name(namespace, key)

    @staticmethod
    def in_namespace(namespace: str, filename: str) -> bool:
        """True when ``filename`` is an entry of exactly ``namespace``."""
        pattern = rf"{re.escape(namespace)}-[0-9a-f]{{{_DIGEST_LEN}}}{re.escape(ENTRY_SUFFIX)}"
        return re.fullmatch(pattern, filename) is not None

    # ------------------------------------------------------------------
    # Point operations
    # ------------------------------------------------------------------

    async def get(self, namespace: str, key: str) -> Any | None:
        """Return cached data, or None when missing, expired or unreadable."""
        if not self._enabled:
            return None
        path = self._entry_path(namespace, key)
        try:
            if not await path.exists():
                return None
            entry = CacheEntry.model_validate_json(await path.read_bytes())
        except (OSError, ValueError) as e:
            logger.warning("Cache read error (%s): %s", path.name, e)
            return None

        if not entry.is_valid():
            logger.debug("Cache entry expired: %s", path.name)
            await self._unlink(path)
            return None
        return entry.data

    async def set(self, namespace: str, key: str, data: Any, ttl: float) -> None:
        """Store JSON-serializable ``data`` for ``ttl`` seconds."""
        if not self._enabled:
            return
        path = self._entry_path(namespace, key)
        try:
            body = json.dumps(
                {"data": data, "timestamp": now_ms(), "ttl": int(round(ttl * 1000))},
                indent=2,
            )
            if not self._dir_ready:
                await self._dir.mkdir(parents=True, exist_ok=True)
                self._dir_ready = True
            # Write to a sibling temp file then rename, so readers never see a partial entry
            tmp = self._dir / f".{path.name}.{uuid.uuid4().hex[:8]}.tmp"
            await tmp.write_text(body, encoding="utf-8")
            await tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Cache write error (%s): %s", path.name, e)

    async def has(self, namespace: str, key: str) -> bool:
        return await self.get(namespace, key) is not None

    async def delete(self, namespace: str, key: str) -> None:
        await self._unlink(self._entry_path(namespace, key))

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def clear(self, namespace: str) -> None:
        """Remove every entry of one namespace."""
        for path in await self._entry_files():
            if self.in_namespace(namespace, path.name):
                await self._unlink(path)

    async def clear_all(self) -> None:
        for path in await self._entry_files():
            await self._unlink(path)

    async def cleanup(self) -> int:
        """Delete expired and unreadable entries; return how many were removed."""
        cleaned = 0
        now = now_ms()
        for path in await self._entry_files():
            try:
                entry = CacheEntry.model_validate_json(await path.read_bytes())
                expired = not entry.is_valid(now)
            except (OSError, ValueError):
                expired = True
            if expired and await self._unlink(path):
                cleaned += 1
        return cleaned

    async def stats(self) -> CacheStats:
        """Aggregate counts and byte size. Read-only: nothing is deleted."""
        stats = CacheStats()
        now = now_ms()
        for path in await self._entry_files():
            try:
                content = await path.read_bytes()
            except OSError as e:
                logger.warning("Cache stats read error (%s): %s", path.name, e)
                continue
            stats.total += 1
            stats.size += len(content)
            try:
                if not CacheEntry.model_validate_json(content).is_valid(now):
                    stats.expired += 1
            except ValueError:
                stats.expired += 1
        return stats

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _entry_files(self) -> list[anyio.Path]:
        try:
            if not await self._dir.exists():
                return []
            return [p async for p in self._dir.iterdir() if p.name.endswith(ENTRY_SUFFIX)]
        except OSError as e:
            logger.warning("Cache directory scan failed (%s): %s", self._dir, e)
            return []

    async def _unlink(self, path: anyio.Path) -> bool:
        try:
            await path.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning("Cache delete error (%s): %s", path.name, e)
            return False
