"""Tests for the search pipeline, wired against a real SQLite index."""

import hashlib
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from shelfscout.adapters.sqlite import SQLiteBookRepository
from shelfscout.config import CatalogError, SearchError, StorageError
from shelfscout.domains.catalog.fetcher import CatalogFetcher
from shelfscout.domains.catalog.models import SearchParams
from shelfscout.domains.indexing.models import BookRecord
from shelfscout.domains.indexing.throttle import StatsRefreshThrottle
from shelfscout.domains.indexing.upserter import IndexUpserter
from shelfscout.domains.outcome import Fail, Ok
from shelfscout.domains.query.expander import QueryExpander
from shelfscout.domains.search.hybrid_search import HybridRetriever
from shelfscout.domains.search.models import RankedCandidate
from shelfscout.domains.search.reranker import LLMReranker

from .cache import JSONCache, MemoryCacheStore
from .metrics import SearchMetrics
from .pipeline import SearchOrchestrator

LOTR = {
    "key": "/works/OL27448W",
    "title": "The Lord of the Rings",
    "author_name": ["J. R. R. Tolkien"],
    "first_publish_year": 1954,
    "language": ["eng"],
    "cover_i": 14625765,
    "has_fulltext": True,
}
HOBBIT = {
    "key": "/works/OL262758W",
    "title": "The Hobbit",
    "author_name": ["J. R. R. Tolkien"],
    "first_publish_year": 1937,
    "language": ["eng"],
}
HARRY_POTTER = {
    "key": "/works/OL82563W",
    "title": "Harry Potter and the Philosopher's Stone",
    "author_name": ["J. K. Rowling"],
    "first_publish_year": 1997,
    "language": ["eng", "heb"],
}


def ranked(total: int, text_matched: int) -> list[RankedCandidate]:
    return [
        RankedCandidate(
            book=BookRecord(work_key=f"/works/OL{i}W", title=f"Dune {i}"),
            vector_score=0.5,
            text_score=1.0 if i < text_matched else 0.0,
        )
        for i in range(total)
    ]


class FakeEmbedder:
    """Deterministic bag-of-words embedder."""

    dimension = 16

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        vectors = []
        for text in texts:
            vector = [0.0] * self.dimension
            for word in text.lower().split():
                vector[int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension] += 1.0
            vectors.append(vector)
        return vectors


class FakeCatalog:
    """Catalog client that answers every query with the same documents."""

    def __init__(self, docs: list[dict]) -> None:
        self.docs = docs
        self.search_calls: list[str] = []
        self.down = False

    async def search(self, params: SearchParams) -> dict:
        self.search_calls.append(params.q)
        if self.down:
            raise CatalogError("Open Library unreachable")
        return {"num_found": len(self.docs), "docs": self.docs}

    async def get_work(self, work_key: str) -> dict:
        return {"key": work_key}

    async def close(self) -> None:
        pass


@pytest.fixture
async def store(tmp_path: Path):
    repo = SQLiteBookRepository(tmp_path / "index.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def metrics() -> SearchMetrics:
    return SearchMetrics()


@pytest.fixture
def cache(metrics: SearchMetrics) -> JSONCache:
    return JSONCache(MemoryCacheStore(), metrics=metrics)


def build_pipeline(store, cache, metrics, catalog, llm=None, retriever=None, embedder=None):
    embedder = embedder or FakeEmbedder()
    return SearchOrchestrator(
        retriever or HybridRetriever(store, embedder, cache),
        QueryExpander(llm, cache),
        CatalogFetcher(catalog, cache, metrics),
        IndexUpserter(store, embedder, StatsRefreshThrottle(), metrics),
        LLMReranker(llm, cache, metrics, enabled=False),
        cache,
        metrics,
    )


class TestSearchOrchestrator:
    """End-to-end tests for SearchOrchestrator."""

    async def test_cold_index_goes_to_catalog(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR, HOBBIT])
        pipeline = build_pipeline(store, cache, metrics, catalog)

        response = await pipeline.search("  Tolkien   RING ", limit=5)

        assert response.query_used == "tolkien ring"
        assert response.results[0].title == "The Lord of the Rings"
        assert response.results[0].cover_url == (
            "https://covers.openlibrary.org/b/id/14625765-L.jpg"
        )
        assert response.results[0].openlibrary_url == "https://openlibrary.org/works/OL27448W"
        assert {r.work_key for r in response.results} == {"/works/OL27448W", "/works/OL262758W"}
        assert catalog.search_calls == ["tolkien ring"]
        assert await store.count() == 2
        assert metrics.count("short_circuit_hits") == 0

    async def test_response_cache_round_trip(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR, HOBBIT])
        embedder = FakeEmbedder()
        pipeline = build_pipeline(store, cache, metrics, catalog, embedder=embedder)

        first = await pipeline.search("tolkien ring", limit=5)
        embed_calls = embedder.calls
        second = await pipeline.search("Tolkien Ring", limit=5)

        assert second.model_dump_json() == first.model_dump_json()
        assert embedder.calls == embed_calls
        assert metrics.count("final_cache_hits") == 1
        assert metrics.count("requests") == 2
        assert len(catalog.search_calls) == 1

    async def test_warm_index_short_circuits(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR, HOBBIT])
        pipeline = build_pipeline(store, cache, metrics, catalog)
        await pipeline.search("tolkien ring", limit=5)

        response = await pipeline.search("tolkien ring", limit=1)

        assert metrics.count("short_circuit_hits") == 1
        assert len(catalog.search_calls) == 1
        assert [r.title for r in response.results] == ["The Lord of the Rings"]
        assert response.suggestions.title_hints == []

    async def test_blank_query_is_rejected(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR])
        pipeline = build_pipeline(store, cache, metrics, catalog)

        with pytest.raises(SearchError):
            await pipeline.search("   ")
        with pytest.raises(SearchError) as exc_info:
            await pipeline.search("")

        assert exc_info.value.message == "Bad Request"
        assert catalog.search_calls == []

    async def test_invalid_limit_and_lang(self, store, cache, metrics):
        pipeline = build_pipeline(store, cache, metrics, FakeCatalog([]))

        with pytest.raises(SearchError):
            await pipeline.search("dune", limit=26)
        with pytest.raises(SearchError):
            await pipeline.search("dune", lang="english")

    async def test_long_query_is_accepted(self, store, cache, metrics):
        catalog = FakeCatalog([])
        pipeline = build_pipeline(store, cache, metrics, catalog)

        response = await pipeline.search("dune " * 200, limit=5)

        assert response.results == []
        assert len(catalog.search_calls) == 1

    async def test_explicit_language_narrows_catalog_query(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR])
        pipeline = build_pipeline(store, cache, metrics, catalog)

        await pipeline.search("tolkien ring", limit=5, lang="ENG")

        assert catalog.search_calls == ["tolkien ring language:eng"]

    async def test_hebrew_query_is_translated(self, store, cache, metrics):
        llm = AsyncMock()
        llm.generate_json.return_value = {
            "primaryQuery": "הארי פוטר",
            "titleHints": ["Harry Potter and the Philosopher's Stone"],
            "authorHints": ["J. K. Rowling"],
            "keywords": [],
        }
        llm.generate.return_value = SimpleNamespace(text="Harry Potter")
        catalog = FakeCatalog([HARRY_POTTER, LOTR])
        pipeline = build_pipeline(store, cache, metrics, catalog, llm=llm)

        response = await pipeline.search("הארי פוטר", limit=5)

        assert response.query_used == "Harry Potter"
        assert response.results[0].work_key == "/works/OL82563W"
        assert response.suggestions.author_hints == ["J. K. Rowling"]
        # Script-inferred language only boosts ranking; it never filters the catalog
        assert catalog.search_calls[0] == "Harry Potter"
        assert all("language:" not in q for q in catalog.search_calls)

    async def test_hebrew_script_defaults_scoring_language(self, store, cache, metrics):
        retriever = AsyncMock()
        retriever.search.return_value = Ok([])
        pipeline = build_pipeline(store, cache, metrics, FakeCatalog([]), retriever=retriever)

        await pipeline.search("הארי פוטר", limit=5)

        assert retriever.search.await_count == 2
        assert all(call.args[2] == "heb" for call in retriever.search.await_args_list)

    async def test_catalog_outage_still_answers_from_index(self, store, cache, metrics):
        catalog = FakeCatalog([LOTR, HOBBIT])
        pipeline = build_pipeline(store, cache, metrics, catalog)
        await pipeline.search("tolkien ring", limit=5)

        catalog.down = True
        response = await pipeline.search("hobbit", limit=5)

        assert response.results[0].title == "The Hobbit"

    async def test_store_failure_raises(self, store, cache, metrics):
        retriever = AsyncMock()
        retriever.search.return_value = Fail(StorageError("database is locked"))
        pipeline = build_pipeline(store, cache, metrics, FakeCatalog([]), retriever=retriever)

        with pytest.raises(StorageError):
            await pipeline.search("dune")

    async def test_few_text_matches_go_to_catalog(self, store, cache, metrics):
        retriever = AsyncMock()
        retriever.search.return_value = Ok(ranked(total=5, text_matched=1))
        catalog = FakeCatalog([LOTR])
        pipeline = build_pipeline(store, cache, metrics, catalog, retriever=retriever)

        await pipeline.search("dune", limit=5)

        assert catalog.search_calls == ["dune"]
        assert metrics.count("short_circuit_hits") == 0

    async def test_text_match_ratio_at_threshold_short_circuits(self, store, cache, metrics):
        retriever = AsyncMock()
        retriever.search.return_value = Ok(ranked(total=5, text_matched=2))
        catalog = FakeCatalog([LOTR])
        pipeline = build_pipeline(store, cache, metrics, catalog, retriever=retriever)

        response = await pipeline.search("dune", limit=5)

        assert catalog.search_calls == []
        assert metrics.count("short_circuit_hits") == 1
        assert len(response.results) == 5
