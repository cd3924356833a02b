"""
Open Library Models - Lenient validation of catalog payloads.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


class SearchDoc(BaseModel):
    """Summary document from ``/search.json``."""

    model_config = ConfigDict(extra="allow")

    key: str = Field(..., min_length=1)
    title: str | None = None
    author_name: list[str] = Field(default_factory=list)
    first_publish_year: int | None = None
    language: list[str] = Field(default_factory=list)
    cover_i: int | None = None
    has_fulltext: bool = False
    public_scan_b: bool = False
    ia: list[str] = Field(default_factory=list)
    subject: list[str] = Field(default_factory=list)

    @field_validator("author_name", "language", "ia", "subject", mode="before")
    @classmethod
    def string_lists(cls, v: Any) -> list[str]:
        return _strings(v)


class WorkDetails(BaseModel):
    """Work document from ``/works/<id>.json``."""

    model_config = ConfigDict(extra="allow")

    key: str | None = None
    title: str | None = None
    description: str | dict[str, Any] | None = None
    subjects: list[str] = Field(default_factory=list)
    languages: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("subjects", mode="before")
    @classmethod
    def string_subjects(cls, v: Any) -> list[str]:
        return _strings(v)
