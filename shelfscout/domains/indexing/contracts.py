"""
Indexing Contracts - Interfaces for the persisted index and embeddings.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import BookRecord

# work_key -> (stored content hash, has a non-null embedding)
Fingerprints = dict[str, tuple[str | None, bool]]


@runtime_checkable
class BookIndexStore(Protocol):
    """Contract for a relational store with vector and full-text capability."""

    async def initialize(self) -> None:
        """Create schema idempotently."""
        ...

    async def get_fingerprints(self, work_keys: list[str]) -> Fingerprints:
        """Look up stored content hashes and embedding presence."""
        ...

    async def upsert_books(self, records: list[BookRecord]) -> int:
        """
        Insert or update rows by work key in one statement.

        A null embedding never overwrites a stored one.
        """
        ...

    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
    ) -> list[tuple[BookRecord, float]]:
        """Rows with an embedding, by cosine similarity descending."""
        ...

    async def text_search(self, query: str, limit: int) -> list[tuple[BookRecord, float]]:
        """Rows whose text index matches, by relevance descending."""
        ...

    async def refresh_statistics(self) -> None:
        """Refresh query planner statistics."""
        ...

    async def get_book(self, work_key: str) -> BookRecord | None:
        """Fetch one row, including its embedding."""
        ...

    async def count(self) -> int:
        """Number of indexed books."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


@runtime_checkable
class Embedder(Protocol):
    """Contract for a batch text-to-vector provider."""

    @property
    def dimension(self) -> int:
        """Output vector dimension."""
        ...

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch; raises EmbeddingError on failure."""
        ...
