"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the store, cache, HTTP clients and the
search pipeline. The CLI builds the same graph through ``build_services``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from shelfscout.adapters.embeddings import create_embedder
from shelfscout.adapters.llm import LLMService, create_llm_service
from shelfscout.adapters.openlibrary import OpenLibraryClient
from shelfscout.config import Settings, get_settings
from shelfscout.domains.catalog import CatalogFetcher
from shelfscout.domains.indexing import (
    BookIndexStore,
    Embedder,
    IndexUpserter,
    StatsRefreshThrottle,
)
from shelfscout.domains.orchestration import (
    CacheStore,
    JSONCache,
    MemoryCacheStore,
    SearchMetrics,
    SearchOrchestrator,
)
from shelfscout.domains.query import QueryExpander
from shelfscout.domains.search import HybridRetriever, LLMReranker

logger = logging.getLogger(__name__)


@dataclass
class SearchServices:
    """Process-wide collaborators of the search pipeline."""

    settings: Settings
    store: BookIndexStore
    cache: JSONCache
    metrics: SearchMetrics
    catalog_client: OpenLibraryClient
    llm: LLMService | None
    embedder: Embedder | None
    expander: QueryExpander
    fetcher: CatalogFetcher
    upserter: IndexUpserter
    orchestrator: SearchOrchestrator

    async def close(self) -> None:
        """Release clients, pools and connections."""
        closables: list[Any] = [self.catalog_client, self.llm, self.embedder, self.store]
        for resource in closables:
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        await self.cache.close()


def build_store(settings: Settings, embedder: Embedder | None = None) -> BookIndexStore:
    """
    Create the configured book index store.

    The PostgreSQL vector column takes the embedder's dimension when one is
    configured, otherwise ``embedding_dimension``.
    """
    backend = settings.store_backend.lower()
    if backend == "postgres":
        if not settings.database_url:
            raise ValueError("store_backend=postgres requires DATABASE_URL")
        from shelfscout.adapters.postgres import PostgresBookRepository

        dimension = embedder.dimension if embedder is not None else settings.embedding_dimension
        return PostgresBookRepository(settings.database_url, dimension=dimension)

    if backend != "sqlite":
        raise ValueError(f"Unknown store backend: {settings.store_backend}")

    from shelfscout.adapters.sqlite import SQLiteBookRepository

    return SQLiteBookRepository(settings.db_path)


def build_cache_store(settings: Settings) -> CacheStore | None:
    """Create the configured cache store, or None to disable caching."""
    backend = settings.cache_backend.lower()
    if backend == "none":
        return None
    if backend == "redis":
        if not settings.redis_url:
            logger.warning("cache_backend=redis without REDIS_URL; caching disabled")
            return None
        from shelfscout.adapters.redis import RedisCacheStore

        return RedisCacheStore(settings.redis_url)
    return MemoryCacheStore(max_size=settings.cache_max_size)


def build_services(settings: Settings) -> SearchServices:
    """Wire the search pipeline from settings."""
    metrics = SearchMetrics()
    embedder = create_embedder(settings)
    store = build_store(settings, embedder)
    cache = JSONCache(build_cache_store(settings), settings.cache_namespace, metrics)
    llm = create_llm_service(settings)
    catalog_client = OpenLibraryClient(settings.openlibrary_url, settings.openlibrary_timeout)

    expander = QueryExpander(llm, cache, ttl_seconds=settings.intent_ttl)
    fetcher = CatalogFetcher(
        catalog_client,
        cache,
        metrics,
        search_ttl=settings.catalog_search_ttl,
        work_ttl=settings.catalog_work_ttl,
        enrich_top_n=settings.enrich_top_n,
        enrich_concurrency=settings.enrich_concurrency,
        max_variants=settings.max_variants,
        search_limit=settings.catalog_search_limit,
    )
    upserter = IndexUpserter(
        store,
        embedder,
        StatsRefreshThrottle(settings.stats_refresh_interval_seconds),
        metrics,
        batch_size=settings.embedding_batch_size,
    )
    retriever = HybridRetriever(
        store,
        embedder,
        cache,
        candidate_floor=settings.candidate_floor,
        candidate_multiplier=settings.candidate_multiplier,
        result_multiplier=settings.result_multiplier,
        embedding_ttl=settings.query_embedding_ttl,
    )
    reranker = LLMReranker(
        llm,
        cache,
        metrics,
        enabled=settings.rerank_enabled,
        timeout_seconds=settings.rerank_timeout_seconds,
        top_k=settings.rerank_top_k,
        ttl_seconds=settings.rerank_ttl,
    )
    orchestrator = SearchOrchestrator(
        retriever,
        expander,
        fetcher,
        upserter,
        reranker,
        cache,
        metrics,
        response_ttl=settings.response_ttl,
        short_circuit_min_text_ratio=settings.short_circuit_min_text_ratio,
        covers_url=settings.covers_url,
        openlibrary_url=settings.openlibrary_url,
    )

    logger.info(
        "Search services: store=%s cache=%s llm=%s embeddings=%s rerank=%s",
        settings.store_backend,
        settings.cache_backend if cache.enabled else "none",
        llm.provider if llm else "none",
        settings.embedding_provider if embedder else "none",
        reranker.active,
    )

    return SearchServices(
        settings=settings,
        store=store,
        cache=cache,
        metrics=metrics,
        catalog_client=catalog_client,
        llm=llm,
        embedder=embedder,
        expander=expander,
        fetcher=fetcher,
        upserter=upserter,
        orchestrator=orchestrator,
    )


@lru_cache
def get_services() -> SearchServices:
    """Get search services singleton."""
    return build_services(get_settings())


def get_orchestrator() -> SearchOrchestrator:
    """Get search pipeline singleton."""
    return get_services().orchestrator


def get_metrics() -> SearchMetrics:
    """Get metrics singleton."""
    return get_services().metrics


def get_store() -> BookIndexStore:
    """Get book index store singleton."""
    return get_services().store


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    await get_services().store.initialize()


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    await get_services().close()
    get_services.cache_clear()
