"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Providers: "none" disables a dependency, the pipeline degrades around it
    llm_provider: str = "none"  # "openai", "gemini", "ollama", "none"
    embedding_provider: str = "none"  # "openai", "local", "none"
    store_backend: str = "sqlite"  # "sqlite", "postgres"
    cache_backend: str = "memory"  # "memory", "redis", "none"

    # Paths / connection strings
    db_path: Path = Path("data/shelfscout.db")
    database_url: str | None = None
    redis_url: str | None = None

    # OpenAI-compatible API
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    llm_temperature: float = 0.2
    llm_timeout: float = 30.0
    embedding_timeout: float = 30.0

    # Gemini
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"

    # Ollama
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"

    # Local embeddings
    local_embedding_model: str = "all-MiniLM-L6-v2"

    # Open Library
    openlibrary_url: str = "https://openlibrary.org"
    covers_url: str = "https://covers.openlibrary.org"
    openlibrary_timeout: float = 15.0
    catalog_search_limit: int = 60
    enrich_top_n: int = 80
    enrich_concurrency: int = 8
    max_variants: int = 6

    # Search
    candidate_floor: int = 30
    candidate_multiplier: int = 3
    result_multiplier: int = 2
    short_circuit_min_text_ratio: float = 0.4
    embedding_batch_size: int = 64
    stats_refresh_interval_seconds: float = 120.0

    # Rerank
    rerank_enabled: bool = False
    rerank_timeout_seconds: float = 6.0
    rerank_top_k: int = 15

    # Cache TTLs (seconds)
    cache_namespace: str = "shelfscout:v1"
    cache_max_size: int = 5000
    response_ttl: int = 900
    intent_ttl: int = 86400
    query_embedding_ttl: int = 86400
    catalog_search_ttl: int = 3600
    catalog_work_ttl: int = 86400
    rerank_ttl: int = 86400

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
