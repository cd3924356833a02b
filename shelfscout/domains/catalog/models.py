"""
Catalog Models - Query shapes for the external bibliographic catalog.
"""

from __future__ import annotations

from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

SEARCH_FIELDS = (
    "key,title,author_name,first_publish_year,language,"
    "cover_i,has_fulltext,public_scan_b,ia,subject"
)


class SearchParams(BaseModel):
    """One query variant sent to the catalog search endpoint."""

    model_config = ConfigDict(frozen=True)

    q: str = Field(..., min_length=1)
    fields: str = SEARCH_FIELDS
    limit: int = Field(default=60, ge=1, le=1000)

    def as_query(self) -> dict[str, str]:
        """Query-string parameters."""
        return {"q": self.q, "fields": self.fields, "limit": str(self.limit)}

    def encoded(self) -> str:
        """Stable URL-encoded form, used as the cache key suffix."""
        return urlencode(sorted(self.as_query().items()))
