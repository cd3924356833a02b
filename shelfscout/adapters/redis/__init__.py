"""
Redis Adapter - Shared cache store.
"""

from .cache import RedisCacheStore

__all__ = ["RedisCacheStore"]
