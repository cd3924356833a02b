"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    CatalogError,
    EmbeddingError,
    ErrorCode,
    LLMError,
    SearchError,
    ShelfScoutError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "ShelfScoutError",
    "SearchError",
    "LLMError",
    "EmbeddingError",
    "CatalogError",
    "StorageError",
]
