"""
Redis Cache Store - Shared cache backend for multi-process deployments.
"""

from __future__ import annotations

import logging

from redis import asyncio as aioredis

logger = logging.getLogger(__name__)

__all__ = ["RedisCacheStore"]


class RedisCacheStore:
    """
    Key-value store over ``redis.asyncio``.

    Errors are raised to the JSON cache facade, which treats them as misses.

    Example:
        >>> store = RedisCacheStore("redis://localhost:6379/0")
        >>> await store.set("shelfscout:v1:intent:ab12", '{"primary_query": "dune"}', 86400)
    """

    def __init__(self, url: str, client: aioredis.Redis | None = None) -> None:
        self.url = url
        self._client = client or aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        value: str | None = await self._client.get(key)
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def invalidate(self, pattern: str) -> int:
        """Delete keys matching a glob pattern."""
        count = 0
        async for key in self._client.scan_iter(match=pattern):
            await self._client.delete(key)
            count += 1
        logger.debug("Invalidated %d redis keys matching %s", count, pattern)
        return count

    async def close(self) -> None:
        await self._client.aclose()
