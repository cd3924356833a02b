"""
Query Contracts - Interfaces for query understanding.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from shelfscout.domains.outcome import Outcome

from .models import QueryIntent


@runtime_checkable
class LanguageModel(Protocol):
    """Contract for the extraction/ranking LLM."""

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> Any:
        """Generate a response whose ``text`` attribute holds the output."""
        ...

    async def generate_json(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> dict[str, Any]:
        """Generate and parse a JSON object."""
        ...


@runtime_checkable
class QueryExpanderContract(Protocol):
    """Contract for query expansion."""

    async def expand(self, normalized_query: str) -> Outcome[QueryIntent]:
        """Turn a normalized query into a structured intent."""
        ...
