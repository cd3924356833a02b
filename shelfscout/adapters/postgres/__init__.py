"""
PostgreSQL Adapter - Book index store with pgvector.
"""

from .repository import PostgresBookRepository

__all__ = ["PostgresBookRepository"]
