"""
Search Domain - Hybrid retrieval and reranking over the book index.

This domain handles:
- Vector similarity search (stored embeddings)
- Full-text search (store text index)
- Composite score fusion with metadata bonuses
- Optional LLM reranking under a deadline
"""

from .contracts import Reranker, Retriever
from .hybrid_search import HybridRetriever
from .models import RankedCandidate, RankItem, RerankResponse, ScoringWeights
from .reranker import LLMReranker

__all__ = [
    "Retriever",
    "Reranker",
    "RankedCandidate",
    "RankItem",
    "RerankResponse",
    "ScoringWeights",
    "HybridRetriever",
    "LLMReranker",
]
