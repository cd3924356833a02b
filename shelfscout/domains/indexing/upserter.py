"""
Index Upserter - Persists catalog records with content-hash-gated embedding.

Flow per call:
1. Deduplicate by work key and compute content hashes
2. Skip embedding for rows whose stored hash matches and already have a vector
3. Embed the rest in batches (a failed batch or a vector of the wrong
   dimension leaves those rows without a new vector and their stored hash)
4. One multi-row upsert (stored embeddings are never regressed to null)
5. Throttled planner statistics refresh
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shelfscout.config import EmbeddingError, StorageError
from shelfscout.domains.outcome import Degraded, Ok, Outcome

from .models import BookRecord, UpsertReport

if TYPE_CHECKING:
    from shelfscout.domains.orchestration.metrics import SearchMetrics

    from .contracts import BookIndexStore, Embedder
    from .throttle import StatsRefreshThrottle

logger = logging.getLogger(__name__)

__all__ = ["IndexUpserter"]


class IndexUpserter:
    """
    Writes BookRecords into the index.

    Example:
        >>> upserter = IndexUpserter(store, embedder, StatsRefreshThrottle(), metrics)
        >>> report = await upserter.upsert(records)
        >>> report.embedded, report.skipped
        (12, 48)
    """

    def __init__(
        self,
        store: BookIndexStore,
        embedder: Embedder | None,
        throttle: StatsRefreshThrottle,
        metrics: SearchMetrics,
        batch_size: int = 64,
    ) -> None:
        """
        Initialize upserter.

        Args:
            store: Book index store
            embedder: Embedding provider, or None to store rows without vectors
            throttle: Gate for planner statistics refresh
            metrics: Metrics sink
            batch_size: Texts per embedding call
        """
        self._store = store
        self._embedder = embedder
        self._throttle = throttle
        self._metrics = metrics
        self._batch_size = max(1, batch_size)

    async def upsert(self, records: list[BookRecord]) -> UpsertReport:
        """
        Upsert records by work key.

        Raises:
            StorageError: The store rejected the write
        """
        unique: dict[str, BookRecord] = {}
        for record in records:
            unique[record.work_key] = record.model_copy(
                update={"content_hash": record.compute_content_hash(), "embedding": None}
            )
        rows = list(unique.values())

        report = UpsertReport()
        if not rows:
            return report

        fingerprints = await self._store.get_fingerprints(list(unique))
        pending = [
            row
            for row in rows
            if not (
                row.work_key in fingerprints
                and fingerprints[row.work_key][0] == row.content_hash
                and fingerprints[row.work_key][1]
            )
        ]
        report.skipped = len(rows) - len(pending)
        if report.skipped:
            self._metrics.inc("embed_skipped", report.skipped)

        if self._embedder is not None and pending:
            for start in range(0, len(pending), self._batch_size):
                batch = pending[start : start + self._batch_size]
                outcome = await self._embed_batch(batch)
                if isinstance(outcome, Ok):
                    for row, vector in zip(batch, outcome.value):
                        row.embedding = vector
                    report.embedded += len(batch)
                else:
                    report.failed_batches += 1
            if report.embedded:
                self._metrics.inc("embed_batched", report.embedded)

        # Rows without a fresh vector keep the stored hash so a later upsert embeds them
        for row in pending:
            if row.embedding is None:
                row.content_hash = fingerprints.get(row.work_key, (None, False))[0]

        report.written = await self._store.upsert_books(rows)

        if self._throttle.should_run():
            try:
                await self._store.refresh_statistics()
                report.stats_refreshed = True
                self._metrics.inc("analyze_runs")
            except StorageError as e:
                logger.warning("Statistics refresh failed: %s", e)

        logger.info(
            "Upserted %d books (embedded=%d, skipped=%d, failed_batches=%d)",
            report.written,
            report.embedded,
            report.skipped,
            report.failed_batches,
        )
        return report

    async def _embed_batch(self, batch: list[BookRecord]) -> Outcome[list[list[float]]]:
        """Embed one batch; failures degrade to no vectors for the batch."""
        assert self._embedder is not None
        try:
            vectors = await self._embedder.embed([row.document_text() for row in batch])
        except EmbeddingError as e:
            logger.warning("Embedding batch of %d failed: %s", len(batch), e)
            return Degraded([], str(e))

        if len(vectors) != len(batch):
            logger.warning(
                "Embedding batch size mismatch: sent=%d received=%d", len(batch), len(vectors)
            )
            return Degraded([], "size_mismatch")

        expected = self._embedder.dimension
        wrong = [len(v) for v in vectors if len(v) != expected]
        if wrong:
            logger.warning(
                "Embedding dimension mismatch: expected=%d received=%d", expected, wrong[0]
            )
            return Degraded([], "dimension_mismatch")
        return Ok(vectors)
