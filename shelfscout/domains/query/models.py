"""
Query Models - Data types for query understanding.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

MAX_TITLE_HINTS = 3
MAX_AUTHOR_HINTS = 3
MAX_KEYWORDS = 6


def _clean_list(value: Any, bound: int) -> list[str]:
    """Coerce untrusted list output into at most ``bound`` non-blank strings."""
    if not isinstance(value, (list, tuple)):
        return []
    cleaned = []
    for item in value:
        if isinstance(item, str) and item.strip():
            cleaned.append(item.strip())
        if len(cleaned) >= bound:
            break
    return cleaned


class QueryIntent(BaseModel):
    """Structured intent extracted from a raw user query."""

    primary_query: str = Field(..., min_length=1)
    english_query: str | None = None
    title_hints: list[str] = Field(default_factory=list)
    author_hints: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)

    @field_validator("title_hints", mode="before")
    @classmethod
    def clamp_titles(cls, v: Any) -> list[str]:
        return _clean_list(v, MAX_TITLE_HINTS)

    @field_validator("author_hints", mode="before")
    @classmethod
    def clamp_authors(cls, v: Any) -> list[str]:
        return _clean_list(v, MAX_AUTHOR_HINTS)

    @field_validator("keywords", mode="before")
    @classmethod
    def clamp_keywords(cls, v: Any) -> list[str]:
        return _clean_list(v, MAX_KEYWORDS)

    @field_validator("english_query", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @property
    def search_query(self) -> str:
        """Query string used against the index and the catalog."""
        return self.english_query or self.primary_query

    @classmethod
    def identity(cls, query: str) -> QueryIntent:
        """Fallback intent: the query itself, no hints."""
        return cls(primary_query=query)

    @classmethod
    def from_llm(cls, payload: Any, fallback: str) -> QueryIntent:
        """Build an intent from the extraction model's JSON object."""
        if not isinstance(payload, dict):
            return cls.identity(fallback)

        primary = payload.get("primaryQuery")
        if not isinstance(primary, str) or not primary.strip():
            primary = fallback

        return cls(
            primary_query=primary.strip(),
            title_hints=payload.get("titleHints"),
            author_hints=payload.get("authorHints"),
            keywords=payload.get("keywords"),
        )
