"""
Hybrid Retriever - Combines vector and full-text scores from the book index.

Features:
- Cosine similarity over stored embeddings (query embedding cached)
- Full-text relevance from the store's text index
- Linear score fusion with language, full-text and cover bonuses
- Text-only fallback when no embedding is available
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shelfscout.config import EmbeddingError, StorageError
from shelfscout.domains.outcome import Degraded, Fail, Ok, Outcome

from .models import RankedCandidate, ScoringWeights

if TYPE_CHECKING:
    from shelfscout.domains.indexing.contracts import BookIndexStore, Embedder
    from shelfscout.domains.orchestration.cache import JSONCache

logger = logging.getLogger(__name__)

__all__ = ["HybridRetriever"]


class HybridRetriever:
    """
    Hybrid search over the persisted index.

    Example:
        >>> retriever = HybridRetriever(store, embedder, cache)
        >>> outcome = await retriever.search("tolkien ring", limit=10, language="eng")
        >>> [c.book.title for c in outcome.value][:2]
        ['The Lord of the Rings', 'The Hobbit']
    """

    def __init__(
        self,
        store: BookIndexStore,
        embedder: Embedder | None,
        cache: JSONCache,
        weights: ScoringWeights | None = None,
        candidate_floor: int = 30,
        candidate_multiplier: int = 3,
        result_multiplier: int = 2,
        embedding_ttl: int = 86400,
    ) -> None:
        """
        Initialize retriever.

        Args:
            store: Book index store
            embedder: Query embedding provider, or None for text-only search
            cache: JSON cache for query embeddings
            weights: Composite score weights
            candidate_floor: Minimum rows scanned per side
            candidate_multiplier: Rows scanned per side as a multiple of limit
            result_multiplier: Rows returned as a multiple of limit
            embedding_ttl: Query embedding cache TTL
        """
        self._store = store
        self._embedder = embedder
        self._cache = cache
        self._weights = weights or ScoringWeights()
        self._candidate_floor = candidate_floor
        self._candidate_multiplier = candidate_multiplier
        self._result_multiplier = result_multiplier
        self._embedding_ttl = embedding_ttl

    async def search(
        self,
        query: str,
        limit: int,
        language: str | None = None,
    ) -> Outcome[list[RankedCandidate]]:
        """
        Execute hybrid search.

        Args:
            query: Query text
            limit: Number of results the caller will show
            language: Preferred language code

        Returns:
            Candidates sorted by composite score; Degraded when the vector
            side was unavailable, Fail when the store failed
        """
        scan_size = max(self._candidate_multiplier * limit, self._candidate_floor)
        embedding = await self._embed_query(query)

        try:
            vector_rows = []
            if isinstance(embedding, Ok):
                vector_rows = await self._store.vector_search(embedding.value, scan_size)
            text_rows = await self._store.text_search(query, scan_size)
        except StorageError as e:
            logger.error("Hybrid search failed: query='%s' error=%s", query[:50], e)
            return Fail(e)

        merged: dict[str, RankedCandidate] = {}
        for book, score in vector_rows:
            merged[book.work_key] = RankedCandidate(book=book, vector_score=score)
        for book, score in text_rows:
            existing = merged.get(book.work_key)
            if existing is None:
                merged[book.work_key] = RankedCandidate(book=book, text_score=score)
            else:
                existing.text_score = score

        for candidate in merged.values():
            candidate.score = self._score(candidate, language)

        # sorted() is stable, so ties keep scan order
        ranked = sorted(merged.values(), key=lambda c: c.score, reverse=True)
        ranked = ranked[: max(self._result_multiplier * limit, limit)]

        logger.debug(
            "Hybrid search: query='%s' -> %d results (vector=%d, text=%d)",
            query[:50],
            len(ranked),
            len(vector_rows),
            len(text_rows),
        )

        if isinstance(embedding, Degraded):
            return Degraded(ranked, embedding.reason)
        return Ok(ranked)

    def _score(self, candidate: RankedCandidate, language: str | None) -> float:
        weights = self._weights
        book = candidate.book
        score = weights.vector * candidate.vector_score + weights.text * candidate.text_score
        if language and language in book.languages:
            score += weights.language
        if book.has_fulltext:
            score += weights.fulltext
        if book.cover_id is not None:
            score += weights.cover
        return score

    async def _embed_query(self, query: str) -> Outcome[list[float]]:
        """Embed the query through the cache; failures leave the vector side empty."""
        if self._embedder is None:
            return Degraded([], "embedding_not_configured")

        embedder = self._embedder

        async def embed() -> list[float] | None:
            vectors = await embedder.embed([query])
            return vectors[0] if vectors else None

        key = self._cache.make_key("qemb", self._cache.hash_key(query))
        try:
            vector = await self._cache.cached_json(key, self._embedding_ttl, embed, kind="embedding")
        except EmbeddingError as e:
            logger.warning("Query embedding failed, text-only search: %s", e)
            return Degraded([], f"embedding_error: {e}")

        if not vector:
            return Degraded([], "embedding_empty")
        return Ok(vector)
