"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from shelfscout.config.errors import ErrorCode, ShelfScoutError

    raise ShelfScoutError(ErrorCode.STORAGE_READ_FAILED, "books table missing")

Only validation errors and storage errors ever reach a caller. LLM, embedding
and catalog errors are raised by adapters and degraded by the domain code that
calls them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Request validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"

    # Embedding provider errors
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"

    # External catalog errors
    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    CATALOG_INVALID_RESPONSE = "CATALOG_INVALID_RESPONSE"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ShelfScoutError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class SearchError(ShelfScoutError):
    """Malformed search input."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INVALID_QUERY, message, details)


class LLMError(ShelfScoutError):
    """LLM/model errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.LLM_UNAVAILABLE, message, details)


class EmbeddingError(ShelfScoutError):
    """Embedding provider errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EMBEDDING_UNAVAILABLE, message, details)


class CatalogError(ShelfScoutError):
    """Open Library errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.CATALOG_UNAVAILABLE, message, details)


class StorageError(ShelfScoutError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_CONNECTION_FAILED, message, details)
