"""
Orchestration Contracts - Interfaces for orchestration domain.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import SearchResponse


@runtime_checkable
class CacheStore(Protocol):
    """Contract for the key-value store behind the JSON cache."""

    async def get(self, key: str) -> str | None:
        """Get raw value, or None when absent or expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store raw value with expiry."""
        ...

    async def close(self) -> None:
        """Release the client."""
        ...


@runtime_checkable
class SearchPipeline(Protocol):
    """Contract for the end-to-end search entry point."""

    async def search(
        self,
        q: str,
        limit: int = 10,
        lang: str | None = None,
    ) -> SearchResponse:
        """
        Run a search.

        Args:
            q: Raw user query
            limit: Number of results requested (1-25)
            lang: Optional 2-3 letter language preference

        Returns:
            Client-facing response

        Raises:
            SearchError: Invalid input
            StorageError: Relational store unavailable
        """
        ...
