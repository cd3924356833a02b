"""
CLI Interface - Command-line tools for ShelfScout.

Provides commands for:
- Book search
- Index warming from seed queries
- Schema initialization
- Running the API server
"""

from .main import app, main

__all__ = ["app", "main"]
