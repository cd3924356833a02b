"""
Search Pipeline - Orchestrates one search request through the domains.

Flow:
1. Validate and normalize the query
2. Response cache
3. DB short-circuit (index already answers the query well enough)
4. Expand -> catalog fetch -> enrich -> upsert
5. Hybrid retrieval -> rerank -> respond (cached before return)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from pydantic import ValidationError

from shelfscout.config import SearchError, StorageError
from shelfscout.domains.outcome import Degraded, Fail, Outcome, unwrap
from shelfscout.domains.query.normalizer import default_language, normalize_query

from .models import BookResult, SearchRequest, SearchResponse, Suggestions

if TYPE_CHECKING:
    from shelfscout.domains.catalog.fetcher import CatalogFetcher
    from shelfscout.domains.indexing.upserter import IndexUpserter
    from shelfscout.domains.query.contracts import QueryExpanderContract
    from shelfscout.domains.search.contracts import Reranker, Retriever
    from shelfscout.domains.search.models import RankedCandidate

    from .cache import JSONCache
    from .metrics import SearchMetrics

logger = logging.getLogger(__name__)

__all__ = ["SearchOrchestrator"]


class SearchOrchestrator:
    """
    Main search pipeline.

    Coordinates:
    - Response caching
    - DB short-circuit before any external call
    - Query expansion and catalog retrieval
    - Index persistence
    - Hybrid retrieval and reranking

    Example:
        >>> orchestrator = SearchOrchestrator(
        ...     retriever, expander, fetcher, upserter, reranker, cache, metrics
        ... )
        >>> response = await orchestrator.search("tolkien ring", limit=5)
        >>> response.results[0].title
        'The Lord of the Rings'
    """

    def __init__(
        self,
        retriever: Retriever,
        expander: QueryExpanderContract,
        fetcher: CatalogFetcher,
        upserter: IndexUpserter,
        reranker: Reranker,
        cache: JSONCache,
        metrics: SearchMetrics,
        response_ttl: int = 900,
        short_circuit_min_text_ratio: float = 0.4,
        covers_url: str = "https://covers.openlibrary.org",
        openlibrary_url: str = "https://openlibrary.org",
    ) -> None:
        """
        Initialize pipeline.

        Args:
            retriever: Hybrid retriever over the index
            expander: Query expander
            fetcher: External catalog fetcher
            upserter: Index upserter
            reranker: Result reranker
            cache: JSON cache for final responses
            metrics: Metrics sink
            response_ttl: Final response TTL
            short_circuit_min_text_ratio: Share of text-matched candidates
                required to answer from the index alone
            covers_url: Cover image host
            openlibrary_url: Catalog site root for result links
        """
        self._retriever = retriever
        self._expander = expander
        self._fetcher = fetcher
        self._upserter = upserter
        self._reranker = reranker
        self._cache = cache
        self._metrics = metrics
        self._response_ttl = response_ttl
        self._min_text_ratio = short_circuit_min_text_ratio
        self._covers_url = covers_url
        self._openlibrary_url = openlibrary_url

    async def search(
        self,
        q: str,
        limit: int = 10,
        lang: str | None = None,
    ) -> SearchResponse:
        """
        Run a search.

        Raises:
            SearchError: Invalid input
            StorageError: Relational store unavailable
        """
        try:
            request = SearchRequest(q=q, limit=limit, lang=lang)
        except ValidationError as e:
            fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
            raise SearchError("Bad Request", {"fields": fields}) from e

        self._metrics.inc("requests")
        explicit_lang = request.lang.lower() if request.lang else None
        phases: dict[str, float] = {}

        with self._phase("total", phases):
            normalized = normalize_query(request.q)
            if not normalized:
                raise SearchError("Query is empty after normalization")

            key = self._cache.make_key(
                "resp", explicit_lang or "-", request.limit, self._cache.hash_key(normalized)
            )
            with self._phase("cache", phases):
                response = await self._cached_response(key)

            if response is not None:
                self._metrics.inc("final_cache_hits")
                path = "cache"
            else:
                language = default_language(normalized, explicit_lang)
                response, path = await self._execute(
                    normalized, request.limit, explicit_lang, language, phases
                )
                await self._cache.set_json(key, response.model_dump(), self._response_ttl)

        logger.info(
            "Search: q='%s' path=%s results=%d ms=%s",
            normalized[:120],
            path,
            len(response.results),
            phases,
        )
        return response

    async def _execute(
        self,
        normalized: str,
        limit: int,
        explicit_lang: str | None,
        language: str | None,
        phases: dict[str, float],
    ) -> tuple[SearchResponse, str]:
        with self._phase("short_circuit", phases):
            outcome = await self._retriever.search(normalized, limit, language)
        candidates = self._candidates(outcome, normalized, "short_circuit")

        if self._index_sufficient(candidates, limit):
            self._metrics.inc("short_circuit_hits")
            results = await self._rerank(candidates, normalized, limit, phases)
            return self._respond(normalized, Suggestions(), results), "short_circuit"

        with self._phase("expand", phases):
            intent_outcome = await self._expander.expand(normalized)
        self._note("expand", intent_outcome, normalized)
        intent = unwrap(intent_outcome)

        # Only an explicit language narrows the catalog query
        variants = self._fetcher.build_variants(intent, explicit_lang)
        with self._phase("catalog", phases):
            docs_outcome = await self._fetcher.fetch_all(variants)
        self._note("catalog", docs_outcome, normalized)
        docs = unwrap(docs_outcome)

        with self._phase("enrich", phases):
            records = await self._fetcher.enrich(docs)

        with self._phase("upsert", phases):
            if records:
                await self._upserter.upsert(records)

        query_used = intent.search_query
        with self._phase("hybrid", phases):
            outcome = await self._retriever.search(query_used, limit, language)
        candidates = self._candidates(outcome, normalized, "hybrid")

        results = await self._rerank(candidates, query_used, limit, phases)
        suggestions = Suggestions(
            title_hints=intent.title_hints,
            author_hints=intent.author_hints,
            keywords=intent.keywords,
        )
        return self._respond(query_used, suggestions, results), "full"

    def _index_sufficient(self, candidates: list[RankedCandidate], limit: int) -> bool:
        """True when the index alone has enough text-matched candidates."""
        if not candidates or len(candidates) < limit:
            return False
        matched = sum(1 for c in candidates if c.text_score > 0)
        return matched / len(candidates) >= self._min_text_ratio

    async def _rerank(
        self,
        candidates: list[RankedCandidate],
        query: str,
        limit: int,
        phases: dict[str, float],
    ) -> list[RankedCandidate]:
        with self._phase("rerank", phases):
            outcome = await self._reranker.rerank(candidates, query, limit)
        self._note("rerank", outcome, query)
        if isinstance(outcome, Fail):
            return candidates[:limit]
        return outcome.value

    def _candidates(
        self,
        outcome: Outcome[list[RankedCandidate]],
        query: str,
        phase: str,
    ) -> list[RankedCandidate]:
        """Unwrap a retrieval outcome; a failed store is fatal."""
        if isinstance(outcome, Fail):
            logger.error("Retrieval failed during %s: q='%s'", phase, query[:50])
            if isinstance(outcome.error, StorageError):
                raise outcome.error
            raise StorageError(str(outcome.error)) from outcome.error
        self._note(phase, outcome, query)
        return outcome.value

    def _respond(
        self,
        query_used: str,
        suggestions: Suggestions,
        candidates: list[RankedCandidate],
    ) -> SearchResponse:
        return SearchResponse(
            query_used=query_used,
            suggestions=suggestions,
            results=[
                BookResult.from_record(c.book, self._covers_url, self._openlibrary_url)
                for c in candidates
            ],
        )

    async def _cached_response(self, key: str) -> SearchResponse | None:
        cached = await self._cache.get_json(key)
        if cached is None:
            return None
        try:
            return SearchResponse.model_validate(cached)
        except ValidationError:
            logger.warning("Discarding malformed cached response: %s", key[:64])
            return None

    @staticmethod
    def _note(phase: str, outcome: Outcome, query: str) -> None:
        if isinstance(outcome, Degraded):
            level = logging.DEBUG if outcome.reason.endswith("not_configured") else logging.WARNING
            logger.log(level, "Degraded %s: q='%s' reason=%s", phase, query[:50], outcome.reason)

    @contextmanager
    def _phase(self, name: str, phases: dict[str, float]) -> Iterator[None]:
        with self._metrics.timer(name) as elapsed:
            yield
        phases[name] = round(elapsed["ms"], 1)
