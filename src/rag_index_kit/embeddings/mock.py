"""Deterministic offline embedding provider.

Vectors are signed feature hashes of the lowercase word tokens, L2
normalised. Identical texts always map to identical vectors and texts
sharing vocabulary score higher than unrelated ones, which is enough for
tests and for running the service without a model server.
"""

import hashlib
import math
import re

from rag_index_kit.constants import DEFAULT_EMBEDDING_DIMENSIONS
from rag_index_kit.embeddings.base import EmbeddingProvider, EmbeddingResult

TOKEN_PATTERN = re.compile(r"\w+")


class MockEmbeddingProvider(EmbeddingProvider):
    """Feature-hashing embeddings with no external dependencies."""

    def __init__(self, dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    @property
    def name(self) -> str:
        return f"mock:{self._dimensions}"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _embed_one(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]

    def embed(self, texts: list[str]) -> EmbeddingResult:
        return EmbeddingResult(
            embeddings=[self._embed_one(text) for text in texts],
            model="feature-hash",
            provider=self.name,
            dimensions=self._dimensions,
        )
