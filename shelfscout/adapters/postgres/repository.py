"""
PostgreSQL Repository - Book index storage with pgvector and tsvector search.

Features:
- asyncpg connection pool with pgvector and jsonb codecs
- Cosine similarity via the pgvector ``<=>`` operator (ivfflat index)
- Full-text search via a trigger-maintained ``tsvector`` column (GIN index)
- Multi-row upsert that never regresses a stored embedding
"""

from __future__ import annotations

import json
import logging
from typing import Any

import asyncpg
import numpy as np
from pgvector.asyncpg import register_vector

from shelfscout.config import StorageError
from shelfscout.domains.indexing.contracts import Fingerprints
from shelfscout.domains.indexing.models import BookRecord

logger = logging.getLogger(__name__)

__all__ = ["PostgresBookRepository"]

DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS books (
        work_key TEXT PRIMARY KEY,
        title TEXT,
        authors TEXT[] NOT NULL DEFAULT '{{}}',
        first_publish_year INT,
        languages TEXT[] NOT NULL DEFAULT '{{}}',
        subjects TEXT[] NOT NULL DEFAULT '{{}}',
        description TEXT,
        cover_id INT,
        has_fulltext BOOLEAN NOT NULL DEFAULT FALSE,
        public_scan BOOLEAN NOT NULL DEFAULT FALSE,
        metadata JSONB,
        content_hash TEXT,
        embedding VECTOR({dimension}),
        tsv TSVECTOR,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );

    CREATE INDEX IF NOT EXISTS books_vec_idx
        ON books USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100);

    CREATE OR REPLACE FUNCTION books_tsv_update() RETURNS trigger AS $$
    BEGIN
        NEW.tsv := to_tsvector('simple',
            coalesce(NEW.title, '') || ' ' ||
            array_to_string(NEW.authors, ' ') || ' ' ||
            coalesce(NEW.description, '') || ' ' ||
            array_to_string(NEW.subjects, ' ')
        );
        RETURN NEW;
    END
    $$ LANGUAGE plpgsql;

    DO $$ BEGIN
        CREATE TRIGGER books_tsv_trg
        BEFORE INSERT OR UPDATE ON books
        FOR EACH ROW EXECUTE FUNCTION books_tsv_update();
    EXCEPTION WHEN duplicate_object THEN NULL; END $$;

    CREATE INDEX IF NOT EXISTS books_tsv_idx ON books USING gin (tsv);
"""

COLUMNS = (
    "work_key",
    "title",
    "authors",
    "first_publish_year",
    "languages",
    "subjects",
    "description",
    "cover_id",
    "has_fulltext",
    "public_scan",
    "metadata",
    "content_hash",
    "embedding",
)

ROW_COLUMNS = ", ".join(COLUMNS[:-1])

# asyncpg caps bound parameters at 32767 per statement
MAX_ROWS_PER_STATEMENT = 1000


def _upsert_sql(row_count: int) -> str:
    width = len(COLUMNS)
    values = ",".join(
        "(" + ",".join(f"${i * width + j + 1}" for j in range(width)) + ")"
        for i in range(row_count)
    )
    updates = ",\n        ".join(
        f"{col} = EXCLUDED.{col}" for col in COLUMNS[1:-1]
    )
    return f"""
    INSERT INTO books ({", ".join(COLUMNS)})
    VALUES {values}
    ON CONFLICT (work_key) DO UPDATE SET
        {updates},
        embedding = COALESCE(EXCLUDED.embedding, books.embedding),
        updated_at = now()
    """


async def _init_connection(conn: asyncpg.Connection) -> None:
    await register_vector(conn)
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


class PostgresBookRepository:
    """
    PostgreSQL repository for the book index.

    Example:
        >>> repo = PostgresBookRepository("postgresql://localhost/shelfscout")
        >>> await repo.initialize()
        >>> results = await repo.vector_search(embedding, limit=30)
    """

    def __init__(
        self,
        dsn: str,
        dimension: int = 1536,
        min_size: int = 1,
        max_size: int = 10,
    ) -> None:
        """
        Initialize repository.

        Args:
            dsn: PostgreSQL connection string
            dimension: Embedding column dimension
            min_size: Minimum pool connections
            max_size: Maximum pool connections
        """
        self._dsn = dsn
        self._dimension = dimension
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def _get_pool(self) -> asyncpg.Pool:
        """Create the pool once the vector extension exists."""
        if self._pool is None:
            try:
                # register_vector needs the type to exist before any pooled connection starts
                conn = await asyncpg.connect(self._dsn)
                try:
                    await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
                finally:
                    await conn.close()

                self._pool = await asyncpg.create_pool(
                    self._dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    init=_init_connection,
                )
            except DB_ERRORS as e:
                raise StorageError(f"Cannot connect to PostgreSQL: {e}") from e
        return self._pool

    async def initialize(self) -> None:
        """Initialize database schema."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(SCHEMA.format(dimension=self._dimension))
        except DB_ERRORS as e:
            raise StorageError(f"Schema creation failed: {e}") from e
        logger.info("Book index initialized on PostgreSQL (dimension=%d)", self._dimension)

    async def get_fingerprints(self, work_keys: list[str]) -> Fingerprints:
        """Stored content hash and embedding presence per work key."""
        if not work_keys:
            return {}
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT work_key, content_hash, embedding IS NOT NULL AS has_embedding
                    FROM books WHERE work_key = ANY($1::text[])
                    """,
                    work_keys,
                )
        except DB_ERRORS as e:
            raise StorageError(f"Fingerprint lookup failed: {e}") from e
        return {row["work_key"]: (row["content_hash"], row["has_embedding"]) for row in rows}

    async def upsert_books(self, records: list[BookRecord]) -> int:
        """Insert or update rows by work key in one transaction."""
        if not records:
            return 0

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for start in range(0, len(records), MAX_ROWS_PER_STATEMENT):
                        chunk = records[start : start + MAX_ROWS_PER_STATEMENT]
                        params: list[Any] = []
                        for r in chunk:
                            params.extend(
                                [
                                    r.work_key,
                                    r.title,
                                    r.authors,
                                    r.first_publish_year,
                                    r.languages,
                                    r.subjects,
                                    r.description,
                                    r.cover_id,
                                    r.has_fulltext,
                                    r.public_scan,
                                    r.metadata or None,
                                    r.content_hash or r.compute_content_hash(),
                                    np.asarray(r.embedding, dtype=np.float32)
                                    if r.embedding is not None
                                    else None,
                                ]
                            )
                        await conn.execute(_upsert_sql(len(chunk)), *params)
        except DB_ERRORS as e:
            raise StorageError(f"Upsert failed: {e}", {"rows": len(records)}) from e

        return len(records)

    async def vector_search(
        self,
        embedding: list[float],
        limit: int,
    ) -> list[tuple[BookRecord, float]]:
        """Nearest rows by cosine distance."""
        if len(embedding) != self._dimension:
            logger.warning(
                "Query embedding dimension %d does not match index dimension %d",
                len(embedding),
                self._dimension,
            )
            return []

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {ROW_COLUMNS}, 1 - (embedding <=> $1) AS score
                    FROM books
                    WHERE embedding IS NOT NULL
                    ORDER BY embedding <=> $1
                    LIMIT $2
                    """,
                    np.asarray(embedding, dtype=np.float32),
                    limit,
                )
        except DB_ERRORS as e:
            raise StorageError(f"Vector search failed: {e}") from e
        return [(_row_to_book(row), float(row["score"])) for row in rows]

    async def text_search(self, query: str, limit: int) -> list[tuple[BookRecord, float]]:
        """Rows whose tsvector matches, ranked by ts_rank."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {ROW_COLUMNS},
                           ts_rank(tsv, plainto_tsquery('simple', $1)) AS score
                    FROM books
                    WHERE tsv @@ plainto_tsquery('simple', $1)
                    ORDER BY score DESC
                    LIMIT $2
                    """,
                    query,
                    limit,
                )
        except DB_ERRORS as e:
            raise StorageError(f"Text search failed: {e}") from e
        return [(_row_to_book(row), float(row["score"])) for row in rows]

    async def refresh_statistics(self) -> None:
        """Run ANALYZE on the books table."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute("ANALYZE books")
        except DB_ERRORS as e:
            raise StorageError(f"ANALYZE failed: {e}") from e
        logger.debug("Refreshed planner statistics for books")

    async def get_book(self, work_key: str) -> BookRecord | None:
        """Get book by work key, including its embedding."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {ROW_COLUMNS}, embedding FROM books WHERE work_key = $1",
                    work_key,
                )
        except DB_ERRORS as e:
            raise StorageError(f"Book lookup failed: {e}") from e

        if row is None:
            return None
        book = _row_to_book(row)
        if row["embedding"] is not None:
            book.embedding = [float(x) for x in row["embedding"]]
        return book

    async def count(self) -> int:
        """Get total book count."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                value = await conn.fetchval("SELECT COUNT(*) FROM books")
        except DB_ERRORS as e:
            raise StorageError(f"Count failed: {e}") from e
        return int(value or 0)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


def _row_to_book(row: Any) -> BookRecord:
    return BookRecord(
        work_key=row["work_key"],
        title=row["title"],
        authors=list(row["authors"] or []),
        first_publish_year=row["first_publish_year"],
        languages=list(row["languages"] or []),
        subjects=list(row["subjects"] or []),
        description=row["description"],
        cover_id=row["cover_id"],
        has_fulltext=row["has_fulltext"],
        public_scan=row["public_scan"],
        metadata=row["metadata"] or {},
        content_hash=row["content_hash"],
    )
