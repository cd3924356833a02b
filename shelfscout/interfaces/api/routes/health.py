"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from shelfscout import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "shelfscout"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "ShelfScout API",
        "version": __version__,
        "description": "Hybrid book search over a local index and Open Library",
        "docs": "/docs",
    }
