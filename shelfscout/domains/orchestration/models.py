"""
Orchestration Models - Request and response types for the search pipeline.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from shelfscout.domains.indexing.models import BookRecord


class SearchRequest(BaseModel):
    """Validated search input."""

    q: str = Field(..., min_length=1)
    limit: int = Field(default=10, ge=1, le=25)
    lang: str | None = Field(default=None, pattern=r"^[A-Za-z]{2,3}$")


class Suggestions(BaseModel):
    """Hints surfaced by query expansion."""

    title_hints: list[str] = Field(default_factory=list)
    author_hints: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class BookResult(BaseModel):
    """One book in the client-facing response."""

    work_key: str
    title: str | None = None
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    languages: list[str] = Field(default_factory=list)
    subjects: list[str] = Field(default_factory=list)
    description: str | None = None
    cover_url: str | None = None
    openlibrary_url: str
    has_fulltext: bool = False
    public_scan: bool = False

    @classmethod
    def from_record(
        cls,
        book: BookRecord,
        covers_url: str = "https://covers.openlibrary.org",
        openlibrary_url: str = "https://openlibrary.org",
    ) -> BookResult:
        return cls(
            work_key=book.work_key,
            title=book.title,
            authors=book.authors,
            year=book.first_publish_year,
            languages=book.languages,
            subjects=book.subjects,
            description=book.description,
            cover_url=book.cover_url(covers_url),
            openlibrary_url=book.catalog_url(openlibrary_url),
            has_fulltext=book.has_fulltext,
            public_scan=book.public_scan,
        )


class SearchResponse(BaseModel):
    """Response returned by the search endpoint."""

    query_used: str
    suggestions: Suggestions = Field(default_factory=Suggestions)
    results: list[BookResult] = Field(default_factory=list)
