"""
Query Domain - Understanding the raw user query.

This domain handles:
- Normalization (diacritics, case, whitespace)
- Script detection (Hebrew/RTL)
- LLM-assisted intent extraction and translation
"""

from .contracts import LanguageModel, QueryExpanderContract
from .expander import QueryExpander
from .models import QueryIntent
from .normalizer import default_language, looks_rtl, normalize_query

__all__ = [
    "LanguageModel",
    "QueryExpanderContract",
    "QueryExpander",
    "QueryIntent",
    "normalize_query",
    "looks_rtl",
    "default_language",
]
