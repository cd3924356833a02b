"""
Embedding Service - Batch text-to-vector providers.

Providers:
- OpenAIEmbedder: OpenAI-compatible ``/embeddings`` endpoint over httpx
- SentenceTransformerEmbedder: local sentence-transformers model
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shelfscout.config import EmbeddingError

if TYPE_CHECKING:
    from shelfscout.config import Settings
    from shelfscout.domains.indexing.contracts import Embedder

logger = logging.getLogger(__name__)

__all__ = ["OpenAIEmbedder", "SentenceTransformerEmbedder", "create_embedder"]


class TransientEmbeddingError(EmbeddingError):
    """Retryable embedding failure (transport error, 429, 5xx)."""


class OpenAIEmbedder:
    """
    Embeddings from an OpenAI-compatible API.

    Example:
        >>> embedder = OpenAIEmbedder(api_key="sk-...")
        >>> vectors = await embedder.embed(["The Hobbit", "The Lord of the Rings"])
        >>> len(vectors[0])
        1536
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        attempts: int = 2,
        backoff: float = 0.5,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._dimension = dimension
        self._attempts = max(1, attempts)
        self._backoff = backoff
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a batch of texts, preserving input order.

        Raises:
            EmbeddingError: Request failed after retries or returned a bad payload
        """
        if not texts:
            return []

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientEmbeddingError),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=self._backoff, max=4),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                data = await self._request(texts)

        items = data.get("data")
        if not isinstance(items, list) or len(items) != len(texts):
            raise EmbeddingError(
                "Embedding response size mismatch",
                {"sent": len(texts), "received": len(items) if isinstance(items, list) else 0},
            )

        if any(not isinstance(item, dict) for item in items):
            raise EmbeddingError("Embedding response has malformed items")
        try:
            ordered = sorted(items, key=lambda item: int(item.get("index", 0)))
        except (TypeError, ValueError) as e:
            raise EmbeddingError("Embedding response has malformed indexes") from e

        vectors = [item.get("embedding") for item in ordered]
        if any(not isinstance(v, list) for v in vectors):
            raise EmbeddingError("Embedding response missing vectors")
        return vectors

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, texts: list[str]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": texts},
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.TransportError as e:
            raise TransientEmbeddingError(f"Embedding provider unreachable: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientEmbeddingError(
                f"Embedding provider error: {response.status_code}",
                {"status": response.status_code},
            )
        if response.status_code != 200:
            raise EmbeddingError(
                f"Embedding provider error: {response.status_code}",
                {"status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingError("Embedding provider returned invalid JSON") from e
        if not isinstance(data, dict):
            raise EmbeddingError("Embedding provider returned an unexpected payload")
        return data


class SentenceTransformerEmbedder:
    """
    Embeddings from a local sentence-transformers model.

    The model is loaded on first use and encoding runs in a worker thread.

    Example:
        >>> embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        >>> vectors = await embedder.embed(["The Hobbit"])
        >>> len(vectors[0])
        384
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2") -> None:
        self.model_name = model_name
        self._model: Any = None

    def _load(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def dimension(self) -> int:
        return int(self._load().get_sentence_embedding_dimension())

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts with normalized vectors."""
        if not texts:
            return []
        try:
            model = self._load()
            vectors = await asyncio.to_thread(
                model.encode,
                texts,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Local embedding failed: {e}", {"model": self.model_name}) from e
        return [[float(x) for x in vector] for vector in vectors]

    async def close(self) -> None:
        self._model = None


def create_embedder(settings: Settings) -> Embedder | None:
    """
    Build the configured embedding provider.

    Returns:
        Embedder, or None for text-only search
    """
    provider = settings.embedding_provider.lower()
    if provider == "none":
        return None

    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("Embedding provider 'openai' configured without OPENAI_API_KEY; disabled")
            return None
        return OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.openai_base_url,
            timeout=settings.embedding_timeout,
        )

    if provider == "local":
        return SentenceTransformerEmbedder(settings.local_embedding_model)

    logger.warning("Unknown embedding provider '%s'; vector search disabled", provider)
    return None
