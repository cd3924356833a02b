"""
Catalog Domain - Candidate retrieval from the external bibliographic catalog.

This domain handles:
- Query variant construction from an intent
- Concurrent, cache-fronted catalog searches
- Bounded-concurrency work-detail enrichment
"""

from .contracts import CatalogClient
from .fetcher import CatalogFetcher
from .models import SEARCH_FIELDS, SearchParams

__all__ = [
    "CatalogClient",
    "CatalogFetcher",
    "SearchParams",
    "SEARCH_FIELDS",
]
