"""
Indexing Models - Data types for the persisted book index.
"""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, Field, field_validator

WORKS_PREFIX = "/works/"


def canonical_work_key(raw: str | None) -> str | None:
    """Normalize ``OL27448W`` or ``/works/OL27448W`` to the ``/works/`` form."""
    if not raw or not isinstance(raw, str):
        return None
    key = raw.strip()
    if not key:
        return None
    if key.startswith(WORKS_PREFIX):
        return key
    return WORKS_PREFIX + key.lstrip("/").removeprefix("works/")


def _text_or_none(value: Any) -> str | None:
    """Open Library descriptions are either a string or ``{"value": ...}``."""
    if isinstance(value, dict):
        value = value.get("value")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class BookRecord(BaseModel):
    """One row of the book index, keyed by canonical work key."""

    work_key: str
    title: str | None = None
    authors: list[str] = Field(default_factory=list)
    first_publish_year: int | None = None
    languages: list[str] = Field(default_factory=list)
    subjects: list[str] = Field(default_factory=list)
    description: str | None = None
    cover_id: int | None = None
    has_fulltext: bool = False
    public_scan: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    content_hash: str | None = None
    embedding: list[float] | None = None

    @field_validator("languages", mode="before")
    @classmethod
    def dedupe_languages(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple, set)):
            return []
        seen: list[str] = []
        for code in v:
            if isinstance(code, str) and code and code not in seen:
                seen.append(code)
        return seen

    @field_validator("authors", "subjects", mode="before")
    @classmethod
    def strings_only(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [s for s in v if isinstance(s, str) and s.strip()]

    def compute_content_hash(self) -> str:
        """Digest of the fields that feed the embedding."""
        parts = [
            self.title or "",
            " ".join(self.authors),
            " ".join(self.subjects),
            self.description or "",
            " ".join(sorted(self.languages)),
        ]
        return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()

    def document_text(self) -> str:
        """Text sent to the embedding provider."""
        parts = [
            self.title or "",
            " ".join(self.authors),
            " ".join(self.subjects),
            self.description or "",
            " ".join(self.languages),
        ]
        return "\n".join(p for p in parts if p)

    def cover_url(self, covers_base: str = "https://covers.openlibrary.org") -> str | None:
        if self.cover_id is None:
            return None
        return f"{covers_base.rstrip('/')}/b/id/{self.cover_id}-L.jpg"

    def catalog_url(self, catalog_base: str = "https://openlibrary.org") -> str:
        return f"{catalog_base.rstrip('/')}{self.work_key}"

    @classmethod
    def from_catalog(
        cls,
        doc: dict[str, Any],
        details: dict[str, Any] | None = None,
    ) -> BookRecord | None:
        """
        Map an Open Library search document (plus optional work details).

        Summary fields come from the search document; description, subjects
        and languages prefer the work details when present.

        Returns:
            BookRecord, or None when the document has no usable key
        """
        work_key = canonical_work_key(doc.get("key"))
        if work_key is None:
            return None

        details = details or {}

        subjects = details.get("subjects")
        if not isinstance(subjects, list):
            subjects = doc.get("subject") or []

        languages = doc.get("language")
        if not isinstance(languages, list) or not languages:
            languages = [
                str(lang.get("key", "")).rsplit("/", 1)[-1]
                for lang in details.get("languages") or []
                if isinstance(lang, dict)
            ]

        year = doc.get("first_publish_year")
        cover = doc.get("cover_i")

        return cls(
            work_key=work_key,
            title=doc.get("title") or details.get("title") or None,
            authors=doc.get("author_name") or [],
            first_publish_year=year if isinstance(year, int) else None,
            languages=languages,
            subjects=subjects,
            description=_text_or_none(details.get("description")),
            cover_id=cover if isinstance(cover, int) and cover > 0 else None,
            has_fulltext=bool(doc.get("has_fulltext")),
            public_scan=bool(doc.get("public_scan_b")),
            metadata=doc,
        )


class UpsertReport(BaseModel):
    """Summary of one upsert call."""

    written: int = 0
    embedded: int = 0
    skipped: int = 0
    failed_batches: int = 0
    stats_refreshed: bool = False
