"""
Search Metrics - In-process counters and phase timers.

Injected into every component that records observability data, so tests can
create a fresh instance per case and assert on exact counts.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)

__all__ = ["SearchMetrics"]


class SearchMetrics:
    """
    Counters and per-phase duration summaries.

    Counter names used across the pipeline:
    requests, cache_hits, cache_misses, final_cache_hits, short_circuit_hits,
    embed_skipped, embed_batched, rerank_timeouts, analyze_runs.

    Example:
        >>> metrics = SearchMetrics()
        >>> metrics.inc("cache_hits", label="ol_search")
        >>> with metrics.timer("hybrid"):
        ...     ...
        >>> metrics.count("cache_hits", "ol_search")
        1
    """

    def __init__(self) -> None:
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._phases: dict[str, dict[str, float]] = {}

    def inc(self, name: str, amount: int = 1, label: str | None = None) -> None:
        """Increment a counter, optionally under a label."""
        self._counters[name][label or ""] += amount

    def count(self, name: str, label: str | None = None) -> int:
        """Read a counter. Without a label, returns the sum over all labels."""
        values = self._counters.get(name)
        if not values:
            return 0
        if label is None:
            return sum(values.values())
        return values.get(label, 0)

    def observe(self, phase: str, seconds: float) -> None:
        """Record one duration sample for a phase."""
        summary = self._phases.setdefault(phase, {"count": 0, "total": 0.0, "max": 0.0})
        summary["count"] += 1
        summary["total"] += seconds
        summary["max"] = max(summary["max"], seconds)

    @contextmanager
    def timer(self, phase: str) -> Iterator[dict[str, float]]:
        """
        Time a block and record it under ``phase``.

        Yields a dict whose ``ms`` entry is filled in on exit, so callers can
        log the elapsed time of the block.
        """
        elapsed: dict[str, float] = {"ms": 0.0}
        start = time.perf_counter()
        try:
            yield elapsed
        finally:
            seconds = time.perf_counter() - start
            elapsed["ms"] = seconds * 1000
            self.observe(phase, seconds)

    def snapshot(self) -> dict[str, Any]:
        """Get a JSON-friendly copy of all counters and phase summaries."""
        counters: dict[str, Any] = {}
        for name, values in self._counters.items():
            if set(values) == {""}:
                counters[name] = values[""]
            else:
                counters[name] = {label or "total": v for label, v in values.items()}

        phases = {
            phase: {
                "count": int(s["count"]),
                "avg_ms": round(s["total"] / s["count"] * 1000, 2) if s["count"] else 0.0,
                "max_ms": round(s["max"] * 1000, 2),
            }
            for phase, s in self._phases.items()
        }
        return {"counters": counters, "phases": phases}

    def reset(self) -> None:
        """Clear all counters and timings."""
        self._counters.clear()
        self._phases.clear()
        logger.debug("Search metrics reset")
