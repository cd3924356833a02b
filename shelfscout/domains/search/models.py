"""
Search Models - Data types for search domain.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from shelfscout.domains.indexing.models import BookRecord


class ScoringWeights(BaseModel):
    """Composite score weights for hybrid ranking."""

    vector: float = 0.65
    text: float = 0.35
    language: float = 0.05
    fulltext: float = 0.03
    cover: float = 0.02

    model_config = {"frozen": True}


class RankedCandidate(BaseModel):
    """A book with its retrieval scores."""

    book: BookRecord
    vector_score: float = 0.0
    text_score: float = 0.0
    score: float = 0.0

    @property
    def work_key(self) -> str:
        return self.book.work_key


class RankItem(BaseModel):
    """One scored item returned by the ranking model."""

    work_key: str
    score: float = 0.0

    @field_validator("score", mode="before")
    @classmethod
    def numeric_or_zero(cls, v: Any) -> float:
        try:
            score = float(v)
        except (TypeError, ValueError):
            return 0.0
        return score if math.isfinite(score) else 0.0


class RerankResponse(BaseModel):
    """Ranking model output: ``{"rank": [{"work_key", "score"}]}``."""

    rank: list[RankItem] = Field(default_factory=list)

    def scores(self) -> dict[str, float]:
        """Score by work key; the first entry for a key wins."""
        scores: dict[str, float] = {}
        for item in self.rank:
            scores.setdefault(item.work_key, item.score)
        return scores
