"""Embedding providers."""

from rag_index_kit.embeddings.base import EmbeddingError, EmbeddingProvider, EmbeddingResult

__all__ = ["EmbeddingError", "EmbeddingProvider", "EmbeddingResult"]
