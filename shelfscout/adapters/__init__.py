"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
Sub-packages are imported directly (``from shelfscout.adapters.sqlite import ...``)
so optional backends load only when configured.
"""

__all__ = [
    "embeddings",
    "llm",
    "openlibrary",
    "postgres",
    "redis",
    "sqlite",
]
