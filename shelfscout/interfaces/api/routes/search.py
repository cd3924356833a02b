"""
Search Routes - Book search and pipeline statistics endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from shelfscout.domains.orchestration import SearchMetrics, SearchOrchestrator, SearchResponse
from shelfscout.interfaces.api.deps import get_metrics, get_orchestrator

router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(default=10, ge=1, le=25),
    lang: str | None = Query(default=None, pattern=r"^[A-Za-z]{2,3}$"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> SearchResponse:
    """
    Search books across the local index and Open Library.

    - **q**: Free-text query, any language
    - **limit**: Maximum results (1-25)
    - **lang**: Preferred language code, e.g. ``eng`` or ``heb``
    """
    return await orchestrator.search(q, limit=limit, lang=lang)


@router.get("/stats")
async def search_stats(
    metrics: SearchMetrics = Depends(get_metrics),
) -> dict[str, Any]:
    """Pipeline counters and per-phase timings since process start."""
    return metrics.snapshot()
