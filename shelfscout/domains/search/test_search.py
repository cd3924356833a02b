"""
Tests for search domain models and hybrid retriever.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from shelfscout.config import EmbeddingError, StorageError
from shelfscout.domains.indexing.models import BookRecord
from shelfscout.domains.orchestration.cache import JSONCache, MemoryCacheStore
from shelfscout.domains.outcome import Degraded, Fail, Ok

from .hybrid_search import HybridRetriever
from .models import RerankResponse, ScoringWeights


class FakeStore:
    """Book index store returning canned scan results."""

    def __init__(self, vector_rows=None, text_rows=None, error: Exception | None = None) -> None:
        self.vector_rows = vector_rows or []
        self.text_rows = text_rows or []
        self.error = error
        self.vector_limits: list[int] = []
        self.text_limits: list[int] = []

    async def vector_search(self, embedding: list[float], limit: int):
        self.vector_limits.append(limit)
        if self.error:
            raise self.error
        return self.vector_rows[:limit]

    async def text_search(self, query: str, limit: int):
        self.text_limits.append(limit)
        if self.error:
            raise self.error
        return self.text_rows[:limit]


def book(key: str, **kwargs) -> BookRecord:
    return BookRecord(work_key=key, title=key.rsplit("/", 1)[-1], **kwargs)


@pytest.fixture
def cache() -> JSONCache:
    return JSONCache(MemoryCacheStore())


@pytest.fixture
def embedder() -> AsyncMock:
    mock = AsyncMock()
    mock.embed.return_value = [[1.0, 0.0]]
    return mock


# --- Model Tests ---


def test_scoring_weights_defaults() -> None:
    weights = ScoringWeights()
    assert (weights.vector, weights.text) == (0.65, 0.35)
    assert (weights.language, weights.fulltext, weights.cover) == (0.05, 0.03, 0.02)


def test_rerank_response_coerces_scores() -> None:
    response = RerankResponse.model_validate(
        {
            "rank": [
                {"work_key": "/works/OL1W", "score": "0.9"},
                {"work_key": "/works/OL2W", "score": "high"},
                {"work_key": "/works/OL3W", "score": "nan"},
                {"work_key": "/works/OL4W", "score": "-inf"},
            ]
        }
    )
    assert response.scores() == {
        "/works/OL1W": 0.9,
        "/works/OL2W": 0.0,
        "/works/OL3W": 0.0,
        "/works/OL4W": 0.0,
    }


# --- HybridRetriever Tests ---


async def test_composite_score(cache: JSONCache, embedder: AsyncMock) -> None:
    """Vector and text scores fuse linearly, bonuses are additive."""
    both = book("/works/OL1W")
    text_only = book("/works/OL2W", languages=["heb"], has_fulltext=True, cover_id=7)
    store = FakeStore(vector_rows=[(both, 0.8)], text_rows=[(both, 0.5), (text_only, 0.9)])

    outcome = await HybridRetriever(store, embedder, cache).search("ring", limit=10, language="heb")

    assert isinstance(outcome, Ok)
    scores = {c.work_key: c for c in outcome.value}
    assert scores["/works/OL1W"].score == pytest.approx(0.65 * 0.8 + 0.35 * 0.5)
    assert scores["/works/OL2W"].score == pytest.approx(0.35 * 0.9 + 0.05 + 0.03 + 0.02)
    assert scores["/works/OL1W"].vector_score == 0.8
    assert scores["/works/OL1W"].text_score == 0.5
    assert [c.work_key for c in outcome.value] == ["/works/OL1W", "/works/OL2W"]


async def test_language_bonus_breaks_ties(cache: JSONCache, embedder: AsyncMock) -> None:
    english = book("/works/OL1W", languages=["eng"])
    hebrew = book("/works/OL2W", languages=["heb"])
    store = FakeStore(text_rows=[(english, 0.5), (hebrew, 0.5)])

    outcome = await HybridRetriever(store, embedder, cache).search("x", limit=5, language="heb")

    assert [c.work_key for c in outcome.value] == ["/works/OL2W", "/works/OL1W"]


async def test_ties_keep_scan_order(cache: JSONCache, embedder: AsyncMock) -> None:
    rows = [(book(f"/works/OL{i}W"), 0.5) for i in range(4)]

    outcome = await HybridRetriever(FakeStore(text_rows=rows), embedder, cache).search("x", limit=4)

    assert [c.work_key for c in outcome.value] == [f"/works/OL{i}W" for i in range(4)]


async def test_scan_and_result_sizes(cache: JSONCache, embedder: AsyncMock) -> None:
    rows = [(book(f"/works/OL{i}W"), 1.0 - i / 100) for i in range(60)]
    store = FakeStore(vector_rows=rows, text_rows=rows)
    retriever = HybridRetriever(store, embedder, cache)

    small = await retriever.search("x", limit=5)
    large = await retriever.search("x", limit=20)

    assert store.vector_limits == [30, 60]
    assert store.text_limits == [30, 60]
    assert len(small.value) == 10
    assert len(large.value) == 40


async def test_no_embedder_is_text_only(cache: JSONCache) -> None:
    store = FakeStore(text_rows=[(book("/works/OL1W"), 0.4)])

    outcome = await HybridRetriever(store, None, cache).search("x", limit=5)

    assert isinstance(outcome, Degraded)
    assert outcome.reason == "embedding_not_configured"
    assert store.vector_limits == []
    assert outcome.value[0].score == pytest.approx(0.35 * 0.4)


async def test_embedding_error_degrades(cache: JSONCache, embedder: AsyncMock) -> None:
    embedder.embed.side_effect = EmbeddingError("provider down")
    store = FakeStore(text_rows=[(book("/works/OL1W"), 0.4)])

    outcome = await HybridRetriever(store, embedder, cache).search("x", limit=5)

    assert isinstance(outcome, Degraded)
    assert outcome.reason.startswith("embedding_error")
    assert len(outcome.value) == 1


async def test_query_embedding_is_cached(cache: JSONCache, embedder: AsyncMock) -> None:
    retriever = HybridRetriever(FakeStore(), embedder, cache)

    await retriever.search("dune", limit=5)
    await retriever.search("dune", limit=5)

    embedder.embed.assert_awaited_once_with(["dune"])


async def test_storage_error_fails(cache: JSONCache, embedder: AsyncMock) -> None:
    store = FakeStore(error=StorageError("database is locked"))

    outcome = await HybridRetriever(store, embedder, cache).search("x", limit=5)

    assert isinstance(outcome, Fail)
    assert isinstance(outcome.error, StorageError)
