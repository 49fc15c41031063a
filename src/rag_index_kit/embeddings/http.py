"""Generic HTTP embedding provider.

POSTs ``{"input": [...], "model": ...}`` to a configured URL. Both the
OpenAI response shape (``{"data": [{"embedding": [...], "index": 0}]}``)
and a bare ``{"embeddings": [[...]]}`` shape are accepted.
"""

import logging
from typing import Any

import httpx

from rag_index_kit.constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_TIMEOUT,
    EMBEDDING_MAX_CHARS,
)
from rag_index_kit.embeddings.base import EmbeddingError, EmbeddingProvider, EmbeddingResult

logger = logging.getLogger(__name__)


class HttpEmbeddingProvider(EmbeddingProvider):
    """Embedding provider for any JSON embedding endpoint.

    Attributes:
        url: Full endpoint URL.
        headers: Extra headers, e.g. ``Authorization``.
        model: Optional model name sent with each request.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        timeout: float = DEFAULT_EMBEDDING_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        """Initialize the provider.

        Args:
            url: Endpoint URL.
            headers: Extra request headers.
            model: Model name included in the payload when set.
            dimensions: Expected embedding size (updated from responses).
            timeout: Request timeout in seconds.
            client: Pre-built HTTP client (tests).
        """
        self._url = url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._model = model
        self._dimensions = dimensions or DEFAULT_EMBEDDING_DIMENSIONS
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        return f"http:{self._model or self._url}"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @staticmethod
    def _parse_embeddings(data: Any) -> list[list[float]]:
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            entries = sorted(data["data"], key=lambda x: x.get("index", 0))
            return [entry["embedding"] for entry in entries]
        if isinstance(data, dict) and isinstance(data.get("embeddings"), list):
            return list(data["embeddings"])
        raise ValueError(f"Unrecognized embedding response: {str(data)[:200]}")

    def embed(self, texts: list[str]) -> EmbeddingResult:
        """Generate embeddings with one request per call.

        Raises:
            EmbeddingError: On HTTP failure or a response of the wrong length.
        """
        if not texts:
            return EmbeddingResult(
                embeddings=[],
                model=self._model or "",
                provider=self.name,
                dimensions=self._dimensions,
            )

        payload: dict[str, Any] = {"input": [text[:EMBEDDING_MAX_CHARS] for text in texts]}
        if self._model:
            payload["model"] = self._model

        try:
            response = self._client.post(self._url, headers=self._headers, json=payload)
        except httpx.RequestError as e:
            raise EmbeddingError(
                f"Embedding request to {self._url} failed: {e}",
                provider=self.name,
                cause=e,
            ) from e

        if response.status_code != 200:
            raise EmbeddingError(
                f"API returned status {response.status_code}: {response.text}",
                provider=self.name,
            )

        try:
            embeddings = self._parse_embeddings(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(str(e), provider=self.name, cause=e) from e

        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}",
                provider=self.name,
            )
        if embeddings and len(embeddings[0]) != self._dimensions:
            self._dimensions = len(embeddings[0])
            logger.info(f"Detected embedding dimensions: {self._dimensions}")

        return EmbeddingResult(
            embeddings=embeddings,
            model=self._model or "",
            provider=self.name,
            dimensions=self._dimensions,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
