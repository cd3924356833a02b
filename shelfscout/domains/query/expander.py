"""
Query Expander - LLM-assisted intent extraction with identity fallback.

The pipeline must work without an LLM: when none is configured, or when any
call fails, the expander returns the identity intent as a Degraded outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from shelfscout.config import LLMError
from shelfscout.domains.outcome import Degraded, Ok, Outcome

from .models import QueryIntent
from .normalizer import looks_rtl

if TYPE_CHECKING:
    from shelfscout.domains.orchestration.cache import JSONCache

    from .contracts import LanguageModel

logger = logging.getLogger(__name__)

__all__ = ["QueryExpander"]

EXTRACTION_PROMPT = (
    "Extract book search hints from a vague user query. "
    'Return JSON {"primaryQuery":string,"titleHints":string[],'
    '"authorHints":string[],"keywords":string[]}. '
    "Use at most 3 title hints, 3 author hints and 6 keywords."
)

TRANSLATION_PROMPT = "Translate to English, return only the translation."


class QueryExpander:
    """
    Turns a normalized query into a QueryIntent.

    Example:
        >>> expander = QueryExpander(llm, cache)
        >>> outcome = await expander.expand("tolkien ring")
        >>> outcome.value.title_hints
        ['The Lord of the Rings']
    """

    def __init__(
        self,
        llm: LanguageModel | None,
        cache: JSONCache,
        ttl_seconds: int = 86400,
    ) -> None:
        """
        Initialize expander.

        Args:
            llm: Extraction model, or None to always use the identity intent
            cache: JSON cache for successful intents
            ttl_seconds: Intent cache TTL
        """
        self._llm = llm
        self._cache = cache
        self._ttl = ttl_seconds

    async def expand(self, normalized_query: str) -> Outcome[QueryIntent]:
        """Expand a query, never raising."""
        key = self._cache.make_key("intent", self._cache.hash_key(normalized_query))

        cached = await self._cache.get_json(key)
        if cached is not None:
            try:
                return Ok(QueryIntent.model_validate(cached))
            except ValidationError:
                logger.warning("Discarding malformed cached intent: %s", key[:64])

        if self._llm is None:
            return Degraded(QueryIntent.identity(normalized_query), "llm_not_configured")

        try:
            intent = await self._extract(normalized_query)
        except (LLMError, ValueError, ValidationError) as e:
            logger.warning(
                "Query expansion failed, using identity: q='%s' error=%s",
                normalized_query[:50],
                e,
            )
            return Degraded(QueryIntent.identity(normalized_query), f"llm_error: {e}")

        await self._cache.set_json(key, intent.model_dump(), self._ttl)
        logger.info(
            "Expanded query '%s': titles=%d authors=%d keywords=%d english=%s",
            normalized_query[:50],
            len(intent.title_hints),
            len(intent.author_hints),
            len(intent.keywords),
            intent.english_query is not None,
        )
        return Ok(intent)

    async def _extract(self, query: str) -> QueryIntent:
        """One extraction call, plus one translation call for RTL queries."""
        assert self._llm is not None

        payload = await self._llm.generate_json(
            f"Query: {query}",
            system_instruction=EXTRACTION_PROMPT,
        )
        intent = QueryIntent.from_llm(payload, fallback=query)

        if looks_rtl(query):
            translation = await self._llm.generate(
                query,
                system_instruction=TRANSLATION_PROMPT,
                temperature=0.2,
            )
            intent = QueryIntent.model_validate(
                {**intent.model_dump(), "english_query": translation.text}
            )

        return intent
