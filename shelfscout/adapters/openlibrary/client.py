"""
Open Library Client - Async HTTP client for the public catalog API.

Features:
- Shared httpx.AsyncClient with a fixed timeout
- One retry on transport errors, 429 and 5xx via tenacity
- Lenient payload validation (malformed search documents are skipped)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shelfscout import __version__
from shelfscout.config import CatalogError
from shelfscout.domains.catalog.models import SearchParams

from .models import SearchDoc, WorkDetails

logger = logging.getLogger(__name__)

__all__ = ["OpenLibraryClient", "TransientCatalogError"]


class TransientCatalogError(CatalogError):
    """Retryable catalog failure (transport error, 429, 5xx)."""


class OpenLibraryClient:
    """
    Open Library API client.

    Example:
        >>> client = OpenLibraryClient()
        >>> payload = await client.search(SearchParams(q="tolkien ring"))
        >>> details = await client.get_work("/works/OL27448W")
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str = "https://openlibrary.org",
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
        attempts: int = 2,
        backoff: float = 0.5,
    ) -> None:
        """
        Initialize client.

        Args:
            base_url: Catalog API root
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (tests pass one with a mock transport)
            attempts: Total tries per request
            backoff: Exponential backoff multiplier between tries
        """
        self.base_url = base_url.rstrip("/")
        self._attempts = max(1, attempts)
        self._backoff = backoff
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": f"shelfscout/{__version__}"},
            follow_redirects=True,
        )

    async def search(self, params: SearchParams) -> dict[str, Any]:
        """
        Search the catalog.

        Returns:
            ``{"num_found": int, "docs": [...]}`` with only well-formed documents

        Raises:
            CatalogError: Request failed after retries
        """
        payload = await self._get_json(f"{self.base_url}/search.json", params.as_query())
        if not isinstance(payload, dict):
            raise CatalogError("Search payload is not an object", {"q": params.q[:80]})

        docs = []
        skipped = 0
        for raw in payload.get("docs") or []:
            try:
                docs.append(SearchDoc.model_validate(raw).model_dump(exclude_none=True))
            except ValidationError:
                skipped += 1

        if skipped:
            logger.debug("Skipped %d malformed search documents for q='%s'", skipped, params.q[:80])

        num_found = payload.get("numFound", payload.get("num_found", len(docs)))
        return {"num_found": num_found, "docs": docs}

    async def get_work(self, work_key: str) -> dict[str, Any]:
        """
        Fetch work details.

        Raises:
            CatalogError: Request failed or payload was malformed
        """
        payload = await self._get_json(f"{self.base_url}{work_key}.json")
        try:
            details = WorkDetails.model_validate(payload)
        except ValidationError as e:
            raise CatalogError("Malformed work payload", {"work_key": work_key}) from e
        return details.model_dump(exclude_none=True)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientCatalogError),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=self._backoff, max=4),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request(url, params)
        return None

    async def _request(self, url: str, params: dict[str, str] | None) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.TransportError as e:
            raise TransientCatalogError(f"Open Library unreachable: {e}", {"url": url}) from e

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning("Open Library returned %d for %s", response.status_code, url)
            raise TransientCatalogError(
                f"Open Library error: {response.status_code}",
                {"url": url, "status": response.status_code},
            )
        if response.status_code != 200:
            raise CatalogError(
                f"Open Library error: {response.status_code}",
                {"url": url, "status": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise CatalogError("Open Library returned invalid JSON", {"url": url}) from e
