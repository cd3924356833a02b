"""
LLM Reranker - Optional model-scored reordering of the top candidates.

The ranking call races a timeout; on timeout or any model error the input
order is kept, so reranking can only improve a response, never block it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from shelfscout.config import LLMError
from shelfscout.domains.outcome import Degraded, Ok, Outcome

from .models import RankedCandidate, RerankResponse

if TYPE_CHECKING:
    from shelfscout.domains.orchestration.cache import JSONCache
    from shelfscout.domains.orchestration.metrics import SearchMetrics
    from shelfscout.domains.query.contracts import LanguageModel

logger = logging.getLogger(__name__)

__all__ = ["LLMReranker"]

RANK_PROMPT = (
    "You are a ranking model. Score each item for how well it matches the "
    "user's intent. Return JSON "
    '{"rank":[{"work_key":string,"score":number}]}.'
)

ITEM_TEXT_LIMIT = 1800


class LLMReranker:
    """
    Reranks the head of a candidate list with a language model.

    Example:
        >>> reranker = LLMReranker(llm, cache, metrics, enabled=True)
        >>> outcome = await reranker.rerank(candidates, "tolkien ring", take=10)
    """

    def __init__(
        self,
        llm: LanguageModel | None,
        cache: JSONCache,
        metrics: SearchMetrics,
        enabled: bool = False,
        timeout_seconds: float = 6.0,
        top_k: int = 15,
        ttl_seconds: int = 86400,
    ) -> None:
        """
        Initialize reranker.

        Args:
            llm: Ranking model, or None to disable
            cache: JSON cache for head orderings
            metrics: Metrics sink (timeouts)
            enabled: Feature flag
            timeout_seconds: Deadline for the ranking call
            top_k: Candidates sent to the model
            ttl_seconds: Ordering cache TTL
        """
        self._llm = llm
        self._cache = cache
        self._metrics = metrics
        self._enabled = enabled
        self._timeout = timeout_seconds
        self._top_k = max(1, top_k)
        self._ttl = ttl_seconds

    @property
    def active(self) -> bool:
        return self._enabled and self._llm is not None

    async def rerank(
        self,
        candidates: list[RankedCandidate],
        query: str,
        take: int,
    ) -> Outcome[list[RankedCandidate]]:
        """Reorder the head of ``candidates`` and return the first ``take``."""
        fallback = candidates[:take]
        if not self.active or len(candidates) < 2:
            return Ok(fallback)

        head = candidates[: self._top_k]
        tail = candidates[self._top_k :]
        fingerprint = query + "|" + ",".join(c.work_key for c in head)
        key = self._cache.make_key("rerank", self._cache.hash_key(fingerprint))

        cached = await self._cache.get_json(key)
        if isinstance(cached, list):
            position = {work_key: i for i, work_key in enumerate(cached)}
            ordered = sorted(head, key=lambda c: position.get(c.work_key, len(position)))
            return Ok((ordered + tail)[:take])

        try:
            scores = await asyncio.wait_for(self._score(query, head), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._metrics.inc("rerank_timeouts")
            logger.warning(
                "Rerank timed out after %.1fs: query='%s'", self._timeout, query[:50]
            )
            return Degraded(fallback, "timeout")
        except (LLMError, ValueError, ValidationError) as e:
            logger.warning("Rerank failed, keeping hybrid order: %s", e)
            return Degraded(fallback, f"llm_error: {e}")

        ordered = sorted(head, key=lambda c: scores.get(c.work_key, 0.0), reverse=True)
        await self._cache.set_json(key, [c.work_key for c in ordered], self._ttl)
        return Ok((ordered + tail)[:take])

    async def _score(self, query: str, head: list[RankedCandidate]) -> dict[str, float]:
        assert self._llm is not None
        items = [
            {"work_key": c.work_key, "text": c.book.document_text()[:ITEM_TEXT_LIMIT]}
            for c in head
        ]
        payload = await self._llm.generate_json(
            json.dumps({"query": query, "items": items}, ensure_ascii=False),
            system_instruction=RANK_PROMPT,
        )
        return RerankResponse.model_validate(payload).scores()
