"""
API Interface - FastAPI REST API.

Exposes the book search pipeline plus health and statistics endpoints.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
