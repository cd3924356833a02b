"""
Orchestration Domain - Search pipeline coordination.

This domain handles:
- JSON response and payload caching
- Search metrics
- End-to-end search orchestration with a DB short-circuit
"""

from .cache import JSONCache, MemoryCacheStore
from .contracts import CacheStore, SearchPipeline
from .metrics import SearchMetrics
from .models import BookResult, SearchRequest, SearchResponse, Suggestions
from .pipeline import SearchOrchestrator

__all__ = [
    # Contracts
    "CacheStore",
    "SearchPipeline",
    # Models
    "SearchRequest",
    "SearchResponse",
    "BookResult",
    "Suggestions",
    # Implementations
    "JSONCache",
    "MemoryCacheStore",
    "SearchMetrics",
    "SearchOrchestrator",
]
