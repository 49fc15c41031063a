"""Ollama embedding provider."""

import logging

import httpx

from rag_index_kit.constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_TIMEOUT,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    EMBEDDING_MAX_CHARS,
)
from rag_index_kit.embeddings.base import EmbeddingError, EmbeddingProvider, EmbeddingResult

logger = logging.getLogger(__name__)


class OllamaProvider(EmbeddingProvider):
    """Embedding provider using a local Ollama server.

    Attributes:
        model: The Ollama model to use for embeddings.
        base_url: The Ollama API base URL.
    """

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        timeout: float = DEFAULT_EMBEDDING_TIMEOUT,
        max_chars: int = EMBEDDING_MAX_CHARS,
        dimensions: int | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            model: Ollama model name for embeddings.
            base_url: Ollama API base URL.
            timeout: Request timeout in seconds.
            max_chars: Texts longer than this are truncated before sending.
            dimensions: Expected embedding size (updated from the first response).
            client: Pre-built HTTP client (tests).
        """
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._max_chars = max_chars
        self._dimensions = dimensions or DEFAULT_EMBEDDING_DIMENSIONS
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        """Provider name."""
        return f"ollama:{self._model}"

    @property
    def dimensions(self) -> int:
        """Embedding dimensions for the configured model."""
        return self._dimensions

    def check_availability(self) -> tuple[bool, str]:
        """Check if Ollama is running and the model is pulled.

        Returns:
            Tuple of (is_available, reason_if_not).
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False, f"Ollama returned status {response.status_code}"

            models = response.json().get("models", [])
            names = {m.get("name", "").split(":")[0] for m in models}
            if self._model.split(":")[0] not in names:
                return False, f"Model '{self._model}' not found in Ollama"
            return True, "ok"

        except httpx.ConnectError:
            return False, f"Cannot connect to Ollama at {self._base_url}"
        except httpx.TimeoutException:
            return False, f"Connection to Ollama timed out at {self._base_url}"
        except httpx.RequestError as e:
            return False, f"Error checking Ollama: {e}"

    def embed(self, texts: list[str]) -> EmbeddingResult:
        """Generate embeddings using Ollama.

        Args:
            texts: List of texts to embed.

        Returns:
            EmbeddingResult with one vector per text.

        Raises:
            EmbeddingError: If the request fails or the response is malformed.
        """
        embeddings = []
        try:
            for text in texts:
                if not text.strip():
                    # Ollama returns an empty vector for blank prompts
                    embeddings.append([0.0] * self._dimensions)
                    continue
                if len(text) > self._max_chars:
                    logger.debug(f"Truncating text from {len(text)} to {self._max_chars} chars")
                    text = text[: self._max_chars]

                response = self._client.post(
                    f"{self._base_url}/api/embeddings",
                    json={"model": self._model, "prompt": text},
                )
                if response.status_code != 200:
                    raise EmbeddingError(
                        f"Ollama returned status {response.status_code}: {response.text}",
                        provider=self.name,
                    )

                data = response.json()
                embedding = data.get("embedding")
                if not embedding:
                    raise EmbeddingError(
                        f"No embedding in Ollama response: {data}",
                        provider=self.name,
                    )
                if len(embedding) != self._dimensions:
                    logger.info(f"Detected embedding dimensions: {len(embedding)}")
                    self._dimensions = len(embedding)
                embeddings.append(embedding)

        except httpx.RequestError as e:
            raise EmbeddingError(
                f"Failed to connect to Ollama: {e}",
                provider=self.name,
                cause=e,
            ) from e

        return EmbeddingResult(
            embeddings=embeddings,
            model=self._model,
            provider=self.name,
            dimensions=self._dimensions,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
