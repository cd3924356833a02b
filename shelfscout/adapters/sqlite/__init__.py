"""
SQLite Adapter - Default book index store.
"""

from .repository import SQLiteBookRepository, build_match_query

__all__ = ["SQLiteBookRepository", "build_match_query"]
