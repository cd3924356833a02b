"""
Search Contracts - Interfaces for retrieval and ranking.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from shelfscout.domains.outcome import Outcome

from .models import RankedCandidate


@runtime_checkable
class Retriever(Protocol):
    """Contract for index retrieval."""

    async def search(
        self,
        query: str,
        limit: int,
        language: str | None = None,
    ) -> Outcome[list[RankedCandidate]]:
        """
        Retrieve ranked candidates from the index.

        Args:
            query: Query text
            limit: Number of results the caller will show
            language: Preferred language code for the score bonus

        Returns:
            Ok/Degraded candidates, or Fail when the store is unavailable
        """
        ...


@runtime_checkable
class Reranker(Protocol):
    """Contract for result reranking."""

    async def rerank(
        self,
        candidates: list[RankedCandidate],
        query: str,
        take: int,
    ) -> Outcome[list[RankedCandidate]]:
        """
        Reorder candidates and return the first ``take``.

        Never fails: every error degrades to the input order.
        """
        ...
