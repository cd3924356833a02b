"""
ShelfScout - Hybrid book search over a local vector+text index and Open Library.

Example:
    >>> from shelfscout.interfaces.api.deps import get_orchestrator
    >>> orchestrator = get_orchestrator()
    >>> response = await orchestrator.search("tolkien ring", limit=5)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
