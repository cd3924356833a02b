"""
Domains - Business logic layer.

Each domain is self-contained with:
- contracts.py: Interfaces (Protocol classes)
- models.py: Pydantic data models
- Implementation files
- Co-located test_*.py modules
"""

__all__ = [
    "query",
    "catalog",
    "indexing",
    "search",
    "orchestration",
]
