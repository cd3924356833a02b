"""
Open Library Adapter - Public bibliographic catalog API.
"""

from .client import OpenLibraryClient, TransientCatalogError
from .models import SearchDoc, WorkDetails

__all__ = ["OpenLibraryClient", "TransientCatalogError", "SearchDoc", "WorkDetails"]
