"""Tests for SQLite Repository."""

import pytest
from pathlib import Path

from shelfscout.domains.indexing.models import BookRecord

from .repository import SQLiteBookRepository, build_match_query


@pytest.fixture
async def repo(tmp_path: Path):
    """Create a test repository with temporary database."""
    db_path = tmp_path / "test.db"
    repo = SQLiteBookRepository(db_path)
    await repo.initialize()
    yield repo
    await repo.close()


def make_book(key: str, title: str, authors: list[str], embedding=None, **kwargs) -> BookRecord:
    book = BookRecord(work_key=key, title=title, authors=authors, embedding=embedding, **kwargs)
    book.content_hash = book.compute_content_hash()
    return book


async def test_initialize_creates_tables(repo: SQLiteBookRepository):
    """Test that initialize creates all required tables."""
    conn = await repo._get_connection()
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    assert "books" in tables
    assert "books_fts" in tables


async def test_initialize_is_idempotent(repo: SQLiteBookRepository):
    await repo.initialize()
    assert await repo.count() == 0


async def test_upsert_and_get_book(repo: SQLiteBookRepository):
    """Test inserting and retrieving a book."""
    written = await repo.upsert_books(
        [
            make_book(
                "/works/OL27448W",
                "The Lord of the Rings",
                ["J. R. R. Tolkien"],
                embedding=[1.0, 0.0, 0.0],
                languages=["eng", "heb"],
                subjects=["Fantasy"],
                cover_id=14625765,
                has_fulltext=True,
            )
        ]
    )
    assert written == 1

    book = await repo.get_book("/works/OL27448W")
    assert book is not None
    assert book.title == "The Lord of the Rings"
    assert book.authors == ["J. R. R. Tolkien"]
    assert book.languages == ["eng", "heb"]
    assert book.has_fulltext is True
    assert book.embedding == pytest.approx([1.0, 0.0, 0.0])

    assert await repo.get_book("/works/OL0W") is None


async def test_upsert_updates_in_place(repo: SQLiteBookRepository):
    await repo.upsert_books([make_book("/works/OL1W", "Dune", ["Frank Herbert"])])
    await repo.upsert_books([make_book("/works/OL1W", "Dune (Deluxe)", ["Frank Herbert"])])

    assert await repo.count() == 1
    book = await repo.get_book("/works/OL1W")
    assert book.title == "Dune (Deluxe)"


async def test_null_embedding_never_overwrites(repo: SQLiteBookRepository):
    """A later write without a vector keeps the stored one."""
    await repo.upsert_books([make_book("/works/OL1W", "Dune", ["Frank Herbert"], [0.0, 1.0])])
    await repo.upsert_books([make_book("/works/OL1W", "Dune", ["Frank Herbert"], None)])

    book = await repo.get_book("/works/OL1W")
    assert book.embedding == pytest.approx([0.0, 1.0])

    fingerprints = await repo.get_fingerprints(["/works/OL1W"])
    assert fingerprints["/works/OL1W"][1] is True


async def test_fingerprints(repo: SQLiteBookRepository):
    dune = make_book("/works/OL1W", "Dune", ["Frank Herbert"])
    await repo.upsert_books([dune])

    fingerprints = await repo.get_fingerprints(["/works/OL1W", "/works/OL2W"])

    assert fingerprints == {"/works/OL1W": (dune.content_hash, False)}
    assert await repo.get_fingerprints([]) == {}


async def test_text_search_prefix_match(repo: SQLiteBookRepository):
    """Test full-text search with prefix tokens."""
    await repo.upsert_books(
        [
            make_book("/works/OL27448W", "The Lord of the Rings", ["J. R. R. Tolkien"]),
            make_book("/works/OL262758W", "The Hobbit", ["J. R. R. Tolkien"]),
            make_book("/works/OL893415W", "Dune", ["Frank Herbert"]),
        ]
    )

    results = await repo.text_search("tolkien ring", limit=10)
    assert [book.work_key for book, _ in results] == ["/works/OL27448W"]
    assert 0.0 < results[0][1] < 1.0

    results = await repo.text_search("tolk", limit=10)
    assert {book.work_key for book, _ in results} == {"/works/OL27448W", "/works/OL262758W"}


async def test_text_search_ignores_accents(repo: SQLiteBookRepository):
    await repo.upsert_books([make_book("/works/OL1W", "Les Misérables", ["Victor Hugo"])])

    results = await repo.text_search("miserables", limit=5)
    assert len(results) == 1


async def test_search_empty_query(repo: SQLiteBookRepository):
    """Test search with empty results."""
    await repo.upsert_books([make_book("/works/OL1W", "Dune", ["Frank Herbert"])])

    assert await repo.text_search("nonexistent_term_xyz", limit=5) == []
    assert await repo.text_search("  !! ", limit=5) == []


async def test_vector_search_orders_by_cosine(repo: SQLiteBookRepository):
    await repo.upsert_books(
        [
            make_book("/works/OL1W", "A", [], [1.0, 0.0]),
            make_book("/works/OL2W", "B", [], [0.6, 0.8]),
            make_book("/works/OL3W", "C", [], [0.0, 1.0]),
            make_book("/works/OL4W", "D", [], None),
            make_book("/works/OL5W", "E", [], [1.0, 0.0, 0.0]),
        ]
    )

    results = await repo.vector_search([1.0, 0.0], limit=2)

    assert [book.work_key for book, _ in results] == ["/works/OL1W", "/works/OL2W"]
    assert results[0][1] == pytest.approx(1.0)
    assert results[1][1] == pytest.approx(0.6)


async def test_vector_search_zero_vector(repo: SQLiteBookRepository):
    await repo.upsert_books([make_book("/works/OL1W", "A", [], [1.0, 0.0])])
    assert await repo.vector_search([0.0, 0.0], limit=5) == []


async def test_refresh_statistics(repo: SQLiteBookRepository):
    await repo.upsert_books([make_book("/works/OL1W", "Dune", ["Frank Herbert"])])
    await repo.refresh_statistics()


def test_build_match_query():
    assert build_match_query("Tolkien ring") == '"tolkien"* AND "ring"*'
    assert build_match_query('x" OR title:*') == '"x"* AND "or"* AND "title"*'
    assert build_match_query("  ") is None
