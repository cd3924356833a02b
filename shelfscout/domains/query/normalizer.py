"""
Query Normalizer - Canonical form and script detection for user queries.
"""

from __future__ import annotations

import re
import unicodedata

__all__ = ["normalize_query", "looks_rtl", "default_language"]

HEBREW_BLOCK = re.compile(r"[\u0590-\u05FF]")
WHITESPACE = re.compile(r"\s+")


def normalize_query(raw: str | None) -> str:
    """
    Trim, strip diacritical marks and lowercase.

    Combining marks are dropped after NFKD decomposition, which removes Latin
    accents as well as Hebrew vowel points while keeping base letters.
    """
    text = (raw or "").strip()
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return WHITESPACE.sub(" ", unicodedata.normalize("NFC", stripped)).lower()


def looks_rtl(query: str) -> bool:
    """True if the query contains any Hebrew code point."""
    return bool(HEBREW_BLOCK.search(query or ""))


def default_language(query: str, explicit: str | None = None) -> str | None:
    """Language preference for scoring: explicit code, else ``heb`` for RTL."""
    if explicit:
        return explicit
    return "heb" if looks_rtl(query) else None
