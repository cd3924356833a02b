"""
Catalog Fetcher - Fans a query intent out to the external catalog.

Flow:
1. Build up to six query variants from the intent
2. Run every variant concurrently, each cache-fronted and independently failable
3. Deduplicate documents by work key in first-seen order
4. Enrich the top documents with work details under a concurrency bound
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from shelfscout.config import CatalogError
from shelfscout.domains.indexing.models import BookRecord, canonical_work_key
from shelfscout.domains.outcome import Degraded, Ok, Outcome

from .models import SearchParams

if TYPE_CHECKING:
    from shelfscout.domains.orchestration.cache import JSONCache
    from shelfscout.domains.orchestration.metrics import SearchMetrics
    from shelfscout.domains.query.models import QueryIntent

    from .contracts import CatalogClient

logger = logging.getLogger(__name__)

__all__ = ["CatalogFetcher"]


class CatalogFetcher:
    """
    Retrieves candidate books from the external catalog.

    Example:
        >>> fetcher = CatalogFetcher(client, cache, metrics)
        >>> variants = fetcher.build_variants(intent, lang="eng")
        >>> outcome = await fetcher.fetch_all(variants)
        >>> records = await fetcher.enrich(outcome.value)
    """

    def __init__(
        self,
        client: CatalogClient,
        cache: JSONCache,
        metrics: SearchMetrics,
        search_ttl: int = 3600,
        work_ttl: int = 86400,
        enrich_top_n: int = 80,
        enrich_concurrency: int = 8,
        max_variants: int = 6,
        search_limit: int = 60,
    ) -> None:
        """
        Initialize fetcher.

        Args:
            client: Catalog HTTP client
            cache: JSON cache for search and work payloads
            metrics: Metrics sink
            search_ttl: Search payload TTL
            work_ttl: Work details TTL
            enrich_top_n: Documents enriched per request
            enrich_concurrency: Work-detail calls in flight
            max_variants: Cap on query variants
            search_limit: Documents requested per variant
        """
        self._client = client
        self._cache = cache
        self._metrics = metrics
        self._search_ttl = search_ttl
        self._work_ttl = work_ttl
        self._enrich_top_n = enrich_top_n
        self._enrich_concurrency = max(1, enrich_concurrency)
        self._max_variants = max_variants
        self._search_limit = search_limit

    def build_variants(self, intent: QueryIntent, lang: str | None = None) -> list[SearchParams]:
        """
        Build query variants in priority order.

        The catalog has no language parameter, so a language preference is
        embedded in the query string as a ``language:<code>`` token.
        """
        queries = [intent.english_query or intent.primary_query]
        queries.extend(f"title:{hint}" for hint in intent.title_hints)
        queries.extend(f"author:{hint}" for hint in intent.author_hints)
        if intent.keywords:
            queries.append(" ".join(intent.keywords))

        variants: list[SearchParams] = []
        seen: set[str] = set()
        for query in queries:
            query = query.strip()
            if not query:
                continue
            if lang:
                query = f"{query} language:{lang}"
            token = query.lower()
            if token in seen:
                continue
            seen.add(token)
            variants.append(SearchParams(q=query, limit=self._search_limit))
            if len(variants) >= self._max_variants:
                break

        return variants

    async def fetch_all(self, variants: list[SearchParams]) -> Outcome[list[dict[str, Any]]]:
        """Run all variants concurrently and merge their documents."""
        if not variants:
            return Ok([])

        results = await asyncio.gather(
            *(self._search(variant) for variant in variants),
            return_exceptions=True,
        )

        docs: list[dict[str, Any]] = []
        seen: set[str] = set()
        failed = 0
        for variant, result in zip(variants, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed += 1
                logger.warning("Catalog variant failed: q='%s' error=%s", variant.q[:80], result)
                continue

            for doc in result.get("docs") or []:
                work_key = canonical_work_key(doc.get("key"))
                if work_key is None or work_key in seen:
                    continue
                seen.add(work_key)
                docs.append(doc)

        if failed:
            return Degraded(docs, f"{failed}/{len(variants)} variants failed")
        return Ok(docs)

    async def enrich(self, docs: list[dict[str, Any]]) -> list[BookRecord]:
        """
        Map the top documents to BookRecords with work details.

        A failed detail call degrades that document to its summary fields.
        Output preserves input order.
        """
        semaphore = asyncio.Semaphore(self._enrich_concurrency)

        async def enrich_one(doc: dict[str, Any]) -> BookRecord | None:
            work_key = canonical_work_key(doc.get("key"))
            if work_key is None:
                return None
            async with semaphore:
                details = await self._work_details(work_key)
            try:
                return BookRecord.from_catalog(doc, details)
            except ValidationError as e:
                logger.warning("Skipping malformed catalog document %s: %s", work_key, e)
                return None

        records = await asyncio.gather(*(enrich_one(doc) for doc in docs[: self._enrich_top_n]))
        return [record for record in records if record is not None]

    async def _search(self, variant: SearchParams) -> dict[str, Any]:
        key = self._cache.make_key("ol", "search", variant.encoded())
        result: dict[str, Any] = await self._cache.cached_json(
            key,
            self._search_ttl,
            lambda: self._client.search(variant),
            kind="ol_search",
        )
        return result

    async def _work_details(self, work_key: str) -> dict[str, Any] | None:
        key = self._cache.make_key("ol", "work", work_key)
        try:
            details: dict[str, Any] | None = await self._cache.cached_json(
                key,
                self._work_ttl,
                lambda: self._client.get_work(work_key),
                kind="work",
            )
        except CatalogError as e:
            logger.debug("Work details unavailable for %s: %s", work_key, e)
            return None
        return details
