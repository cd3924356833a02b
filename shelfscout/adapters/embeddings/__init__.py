"""
Embeddings Adapter - Text-to-vector providers for the book index.
"""

from .service import OpenAIEmbedder, SentenceTransformerEmbedder, create_embedder

__all__ = ["OpenAIEmbedder", "SentenceTransformerEmbedder", "create_embedder"]
