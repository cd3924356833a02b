"""
SQLite Repository - Book index storage with FTS5 search and vector scan.

Features:
- Async operations via aiosqlite
- Full-text search with FTS5, kept in sync by triggers
- Embeddings stored as float32 blobs, cosine similarity via numpy
- Upsert by work key that never regresses a stored embedding
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np

from shelfscout.config import StorageError
from shelfscout.domains.indexing.contracts import Fingerprints
from shelfscout.domains.indexing.models import BookRecord

logger = logging.getLogger(__name__)

__all__ = ["SQLiteBookRepository"]

SCHEMA = """
    -- Books table
    CREATE TABLE IF NOT EXISTS books (
        work_key TEXT PRIMARY KEY,
        title TEXT,
        authors TEXT NOT NULL DEFAULT '[]',
        first_publish_year INTEGER,
        languages TEXT NOT NULL DEFAULT '[]',
        subjects TEXT NOT NULL DEFAULT '[]',
        description TEXT,
        cover_id INTEGER,
        has_fulltext INTEGER NOT NULL DEFAULT 0,
        public_scan INTEGER NOT NULL DEFAULT 0,
        metadata TEXT,
        content_hash TEXT,
        embedding BLOB,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- FTS5 virtual table for full-text search
    CREATE VIRTUAL TABLE IF NOT EXISTS books_fts USING fts5(
        title,
        authors,
        subjects,
        description,
        content='books',
        content_rowid='rowid',
        tokenize='unicode61 remove_diacritics 2'
    );

    -- Triggers to keep FTS in sync
    CREATE TRIGGER IF NOT EXISTS books_ai AFTER INSERT ON books BEGIN
        INSERT INTO books_fts(rowid, title, authors, subjects, description)
        VALUES (new.rowid, new.title, new.authors, new.subjects, new.description);
    END;

    CREATE TRIGGER IF NOT EXISTS books_ad AFTER DELETE ON books BEGIN
        INSERT INTO books_fts(books_fts, rowid, title, authors, subjects, description)
        VALUES ('delete', old.rowid, old.title, old.authors, old.subjects, old.description);
    END;

    CREATE TRIGGER IF NOT EXISTS books_au AFTER UPDATE ON books BEGIN
        INSERT INTO books_fts(books_fts, rowid, title, authors, subjects, description)
        VALUES ('delete', old.rowid, old.title, old.authors, old.subjects, old.description);
        INSERT INTO books_fts(rowid, title, authors, subjects, description)
        VALUES (new.rowid, new.title, new.authors, new.subjects, new.description);
    END;

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_books_embedded
        ON books(work_key) WHERE embedding IS NOT NULL;
"""

UPSERT_SQL = """
    INSERT INTO books (
        work_key, title, authors, first_publish_year, languages, subjects,
        description, cover_id, has_fulltext, public_scan, metadata,
        content_hash, embedding
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(work_key) DO UPDATE SET
        title = excluded.title,
        authors = excluded.authors,
        first_publish_year = excluded.first_publish_year,
        languages = excluded.languages,
        subjects = excluded.subjects,
        description = excluded.description,
        cover_id = excluded.cover_id,
        has_fulltext = excluded.has_fulltext,
        public_scan = excluded.public_scan,
        metadata = excluded.metadata,
        content_hash = excluded.content_hash,
        embedding = COALESCE(excluded.embedding, books.embedding),
        updated_at = CURRENT_TIMESTAMP
"""

ROW_COLUMNS = """
    work_key, title, authors, first_publish_year, languages, subjects,
    description, cover_id, has_fulltext, public_scan, metadata, content_hash
"""

# SQLite default limit on bound parameters is 999 on older builds
KEY_CHUNK = 500

TOKEN = re.compile(r"\w+", re.UNICODE)


def build_match_query(query: str) -> str | None:
    """
    FTS5 expression requiring every query token, each as a prefix.

    Tokens are quoted so user input never reaches the FTS5 query grammar.
    """
    tokens = TOKEN.findall(query.lower())
    if not tokens:
        return None
    return " AND ".join(f'"{token}"*' for token in tokens)


class SQLiteBookRepository:
    """
    SQLite repository for the book index.

    Example:
        >>> repo = SQLiteBookRepository("data/shelfscout.db")
        >>> await repo.initialize()
        >>> await repo.upsert_books([record])
        >>> results = await repo.text_search("tolkien ring", limit=30)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StorageError(f"Cannot open database: {e}", {"path": str(self.db_path)}) from e
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()
        try:
            await conn.executescript(SCHEMA)
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Schema creation failed: {e}") from e
        logger.info("Book index initialized: %s", self.db_path)

    async def get_fingerprints(self, work_keys: list[str]) -> Fingerprints:
        """Stored content hash and embedding presence per work key."""
        conn = await self._get_connection()
        found: Fingerprints = {}

        try:
            for start in range(0, len(work_keys), KEY_CHUNK):
                chunk = work_keys[start : start + KEY_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                cursor = await conn.execute(
                    f"""
                    SELECT work_key, content_hash, embedding IS NOT NULL AS has_embedding
                    FROM books WHERE work_key IN ({placeholders})
                    """,
                    chunk,
                )
                for row in await cursor.fetchall():
                    found[row["work_key"]] = (row["content_hash"], bool(row["has_embedding"]))
        except sqlite3.Error as e:
            raise StorageError(f"Fingerprint lookup failed: {e}") from e

        return found

    async def upsert_books(self, records: list[BookRecord]) -> int:
        """Insert or update rows by work key in a single transaction."""
        if not records:
            return 0

        conn = await self._get_connection()
        params = [
            (
                r.work_key,
                r.title,
                json.dumps(r.authors, ensure_ascii=False),
                r.first_publish_year,
                json.dumps(r.languages),
                json.dumps(r.subjects, ensure_ascii=False),
                r.description,
                r.cover_id,
                int(r.has_fulltext),
                int(r.public_scan),
                json.dumps(r.metadata, ensure_ascii=False) if r.metadata else None,
                r.content_hash or r.compute_content_hash(),
                _to_blob(r.embedding),
            )
            for r in records
        ]

        try:
            await conn.executemany(UPSERT_SQL, params)
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StorageError(f"Upsert failed: {e}", {"rows": len(records)}) from e

        return len(records)

    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
    ) -> list[tuple[BookRecord, float]]:
        """Cosine similarity over rows with an embedding of matching dimension."""
        query = np.asarray(embedding, dtype=np.float32)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0 or limit <= 0:
            return []

        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                "SELECT work_key, embedding FROM books WHERE embedding IS NOT NULL"
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Vector scan failed: {e}") from e

        keys: list[str] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            vector = np.frombuffer(row["embedding"], dtype=np.float32)
            if vector.shape[0] == query.shape[0]:
                keys.append(row["work_key"])
                vectors.append(vector)

        if not vectors:
            return []

        matrix = np.vstack(vectors)
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0.0] = 1.0
        similarities = (matrix @ query) / (norms * query_norm)

        top = np.argsort(-similarities, kind="stable")[:limit]
        scores = {keys[i]: float(similarities[i]) for i in top}

        books = await self._fetch_books([keys[i] for i in top])
        return [(books[key], scores[key]) for key in scores if key in books]

    async def text_search(self, query: str, limit: int) -> list[tuple[BookRecord, float]]:
        """
        Full-text search using FTS5.

        BM25 is negated and squashed to ``s / (1 + s)`` so it sits on the
        same 0..1 scale as cosine similarity.
        """
        match = build_match_query(query)
        if match is None or limit <= 0:
            return []

        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                f"""
                SELECT {", ".join("b." + c.strip() for c in ROW_COLUMNS.split(","))},
                       bm25(books_fts) AS score
                FROM books_fts
                JOIN books b ON books_fts.rowid = b.rowid
                WHERE books_fts MATCH ?
                ORDER BY score
                LIMIT ?
                """,
                (match, limit),
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Text search failed: {e}", {"match": match}) from e

        results = []
        for row in rows:
            relevance = max(0.0, -float(row["score"]))
            results.append((_row_to_book(row), max(relevance / (1.0 + relevance), 1e-6)))
        return results

    async def refresh_statistics(self) -> None:
        """Run ANALYZE on the books table."""
        conn = await self._get_connection()
        try:
            await conn.execute("ANALYZE books")
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"ANALYZE failed: {e}") from e
        logger.debug("Refreshed planner statistics for books")

    async def get_book(self, work_key: str) -> BookRecord | None:
        """Get book by work key, including its embedding."""
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                f"SELECT {ROW_COLUMNS}, embedding FROM books WHERE work_key = ?",
                (work_key,),
            )
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Book lookup failed: {e}") from e

        if row is None:
            return None
        book = _row_to_book(row)
        if row["embedding"] is not None:
            book.embedding = np.frombuffer(row["embedding"], dtype=np.float32).tolist()
        return book

    async def count(self) -> int:
        """Get total book count."""
        conn = await self._get_connection()
        try:
            cursor = await conn.execute("SELECT COUNT(*) FROM books")
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Count failed: {e}") from e
        return row[0] if row else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _fetch_books(self, work_keys: list[str]) -> dict[str, BookRecord]:
        if not work_keys:
            return {}
        conn = await self._get_connection()
        placeholders = ",".join("?" for _ in work_keys)
        try:
            cursor = await conn.execute(
                f"SELECT {ROW_COLUMNS} FROM books WHERE work_key IN ({placeholders})",
                work_keys,
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Book fetch failed: {e}") from e
        return {row["work_key"]: _row_to_book(row) for row in rows}


def _to_blob(embedding: list[float] | None) -> bytes | None:
    if embedding is None:
        return None
    return np.asarray(embedding, dtype=np.float32).tobytes()


def _row_to_book(row: Any) -> BookRecord:
    return BookRecord(
        work_key=row["work_key"],
        title=row["title"],
        authors=json.loads(row["authors"] or "[]"),
        first_publish_year=row["first_publish_year"],
        languages=json.loads(row["languages"] or "[]"),
        subjects=json.loads(row["subjects"] or "[]"),
        description=row["description"],
        cover_id=row["cover_id"],
        has_fulltext=bool(row["has_fulltext"]),
        public_scan=bool(row["public_scan"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        content_hash=row["content_hash"],
    )
