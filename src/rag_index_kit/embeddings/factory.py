"""Embedding provider construction from configuration."""

import logging

from rag_index_kit.config import EmbeddingConfig
from rag_index_kit.constants import (
    EMBEDDING_PROVIDER_HTTP,
    EMBEDDING_PROVIDER_MOCK,
    EMBEDDING_PROVIDER_OLLAMA,
)
from rag_index_kit.embeddings.base import EmbeddingProvider
from rag_index_kit.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_provider_from_config(config: EmbeddingConfig) -> EmbeddingProvider:
    """Create an embedding provider from configuration.

    Args:
        config: Embedding configuration.

    Returns:
        Configured embedding provider.

    Raises:
        ConfigurationError: If provider type is not supported.
    """
    provider_type = config.provider.lower()

    if provider_type == EMBEDDING_PROVIDER_MOCK:
        from rag_index_kit.embeddings.mock import MockEmbeddingProvider

        logger.warning(
            f"Using mock embeddings (dim: {config.dimensions}); search quality is lexical only"
        )
        return MockEmbeddingProvider(dimensions=config.dimensions)
    elif provider_type == EMBEDDING_PROVIDER_OLLAMA:
        from rag_index_kit.embeddings.ollama import OllamaProvider

        return OllamaProvider(
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
            dimensions=config.dimensions,
        )
    elif provider_type == EMBEDDING_PROVIDER_HTTP:
        from rag_index_kit.embeddings.http import HttpEmbeddingProvider

        if not config.url:
            raise ConfigurationError("http embedding provider requires a url", key="embedding.url")
        return HttpEmbeddingProvider(
            url=config.url,
            headers=config.headers,
            model=config.model or None,
            dimensions=config.dimensions,
            timeout=config.timeout,
        )
    else:
        raise ConfigurationError(
            f"Unknown embedding provider type: {provider_type}", key="embedding.provider"
        )
