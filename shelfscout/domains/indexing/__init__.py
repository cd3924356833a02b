"""
Indexing Domain - The persisted vector+text book index.

This domain handles:
- BookRecord mapping from catalog payloads
- Content-hash-gated, batched embedding
- Upsert-by-key with never-regress embeddings
- Throttled planner statistics refresh
"""

from .contracts import BookIndexStore, Embedder, Fingerprints
from .models import BookRecord, UpsertReport, canonical_work_key
from .throttle import StatsRefreshThrottle
from .upserter import IndexUpserter

__all__ = [
    "BookIndexStore",
    "Embedder",
    "Fingerprints",
    "BookRecord",
    "UpsertReport",
    "canonical_work_key",
    "StatsRefreshThrottle",
    "IndexUpserter",
]
