"""
Catalog Contracts - Interface for the external bibliographic catalog.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import SearchParams


@runtime_checkable
class CatalogClient(Protocol):
    """Contract for a catalog HTTP client."""

    async def search(self, params: SearchParams) -> dict[str, Any]:
        """
        Run one search.

        Returns:
            Payload with a ``docs`` list of summary documents

        Raises:
            CatalogError: Request failed after retries
        """
        ...

    async def get_work(self, work_key: str) -> dict[str, Any]:
        """
        Fetch work details (description, subjects, languages).

        Raises:
            CatalogError: Request failed or payload was malformed
        """
        ...

    async def close(self) -> None:
        """Release the HTTP client."""
        ...
