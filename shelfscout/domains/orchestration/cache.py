"""
Response Cache - JSON cache facade over a key-value store with TTL.

The cache is an optimization, never a correctness dependency: every store
failure is logged and turned into a miss (reads) or a no-op (writes).
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .contracts import CacheStore
    from .metrics import SearchMetrics

logger = logging.getLogger(__name__)

__all__ = ["MemoryCacheStore", "JSONCache"]


class MemoryCacheStore:
    """
    In-memory key-value store with TTL.

    Features:
    - Automatic TTL expiration
    - Oldest-first eviction at max size
    - Pattern-based invalidation
    """

    def __init__(self, max_size: int = 5000) -> None:
        """
        Initialize store.

        Args:
            max_size: Maximum number of cached entries
        """
        self._entries: dict[str, tuple[str, float, float]] = {}
        self._max_size = max_size
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> str | None:
        """Get value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        value, _, expires_at = entry
        if time.monotonic() > expires_at:
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key[:64])
            return None

        self._hits += 1
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_oldest()

        now = time.monotonic()
        self._entries[key] = (value, now, now + ttl_seconds)

    async def invalidate(self, pattern: str) -> int:
        """Invalidate entries whose key matches pattern."""
        regex = re.compile(pattern)
        keys_to_delete = [k for k in self._entries if regex.search(k)]

        for key in keys_to_delete:
            del self._entries[key]

        logger.info("Invalidated %d cache entries matching: %s", len(keys_to_delete), pattern)
        return len(keys_to_delete)

    async def clear(self) -> None:
        """Clear all entries."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cleared %d cache entries", count)

    async def close(self) -> None:
        """Nothing to release for the in-process store."""

    def _evict_oldest(self) -> None:
        """Evict oldest 10% of entries to make room."""
        sorted_keys = sorted(self._entries, key=lambda k: self._entries[k][1])
        evict_count = max(1, len(sorted_keys) // 10)

        for key in sorted_keys[:evict_count]:
            del self._entries[key]

        logger.debug("Evicted %d oldest cache entries", evict_count)

    def stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
        }


class JSONCache:
    """
    Namespaced JSON cache that never raises.

    Example:
        >>> cache = JSONCache(MemoryCacheStore())
        >>> key = cache.make_key("intent", cache.hash_key("tolkien ring"))
        >>> await cache.set_json(key, {"primaryQuery": "tolkien ring"}, 3600)
        >>> await cache.get_json(key)
        {'primaryQuery': 'tolkien ring'}
    """

    def __init__(
        self,
        store: CacheStore | None,
        namespace: str = "shelfscout:v1",
        metrics: SearchMetrics | None = None,
    ) -> None:
        """
        Initialize cache facade.

        Args:
            store: Backing key-value store (None disables caching)
            namespace: Versioned key prefix; bump the version when a cached shape changes
            metrics: Optional metrics sink for hit/miss counters
        """
        self._store = store
        self._namespace = namespace
        self._metrics = metrics

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def make_key(self, *parts: Any) -> str:
        """Build a namespaced key from parts."""
        return ":".join([self._namespace, *(str(p) for p in parts)])

    @staticmethod
    def hash_key(text: str) -> str:
        """Content hash used for content-addressed keys."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]

    async def get_json(self, key: str) -> Any | None:
        """Read and decode a value; any failure is a miss."""
        if self._store is None:
            return None
        try:
            raw = await self._store.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.warning("Cache read failed, treating as miss: key=%s error=%s", key[:64], e)
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Encode and store a value; any failure is ignored."""
        if self._store is None:
            return
        try:
            await self._store.set(key, json.dumps(value, ensure_ascii=False), ttl_seconds)
            logger.debug("Cached: %s (TTL: %ds)", key[:64], ttl_seconds)
        except Exception as e:
            logger.warning("Cache write failed, skipping: key=%s error=%s", key[:64], e)

    async def cached_json(
        self,
        key: str,
        ttl_seconds: int,
        fn: Callable[[], Awaitable[Any]],
        kind: str = "other",
    ) -> Any:
        """
        Read-through helper.

        Errors raised by ``fn`` propagate; they come from the source of truth,
        not from the cache. A None result is returned but not cached.
        """
        hit = await self.get_json(key)
        if hit is not None:
            self._count("cache_hits", kind)
            return hit

        value = await fn()
        self._count("cache_misses", kind)
        if value is not None:
            await self.set_json(key, value, ttl_seconds)
        return value

    async def close(self) -> None:
        """Close the backing store."""
        if self._store is None:
            return
        try:
            await self._store.close()
        except Exception as e:
            logger.warning("Cache close failed: %s", e)

    def _count(self, name: str, kind: str) -> None:
        if self._metrics is not None:
            self._metrics.inc(name, label=kind)
