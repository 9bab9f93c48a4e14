"""Semantic store and cosine similarity ranking."""

from src.retrieval.similarity import cosine_similarity, rank_by_similarity
from src.retrieval.store import SemanticStore, format_context

__all__ = ["SemanticStore", "format_context", "cosine_similarity", "rank_by_similarity"]
