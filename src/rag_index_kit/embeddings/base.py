"""Base embedding provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from rag_index_kit.exceptions import RagIndexError


@dataclass
class EmbeddingResult:
    """Result from embedding operation."""

    embeddings: list[list[float]]
    model: str
    provider: str
    dimensions: int


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers.

    Providers are length-preserving: ``embed(texts)`` returns exactly one
    vector per input text, in order.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and identification."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Dimensionality of the embedding vectors."""
        ...

    def check_availability(self) -> tuple[bool, str]:
        """Check whether the provider can serve embedding requests.

        Returns:
            Tuple of (is_available, reason_if_not).
        """
        return True, "ok"

    @abstractmethod
    def embed(self, texts: list[str]) -> EmbeddingResult:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed.

        Returns:
            EmbeddingResult containing the embeddings and metadata.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        ...

    def embed_query(self, query: str) -> list[float]:
        """Generate embedding for a single query."""
        result = self.embed([query])
        return result.embeddings[0]

    def close(self) -> None:
        """Release network resources, if any."""


class EmbeddingError(RagIndexError):
    """Raised when embedding generation fails."""

    def __init__(self, message: str, provider: str, cause: Exception | None = None):
        """Initialize embedding error.

        Args:
            message: Error description.
            provider: Name of the provider that failed.
            cause: Optional underlying exception.
        """
        super().__init__(message, {"provider": provider})
        self.provider = provider
        self.cause = cause
