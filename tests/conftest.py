"""Pytest configuration and fixtures for rag-index-kit tests."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from rag_index_kit.config import EmbeddingConfig, RagServiceConfig
from rag_index_kit.embeddings.mock import MockEmbeddingProvider
from rag_index_kit.store.memory import reset_in_memory_store


@pytest.fixture
def anyio_backend():
    """Run anyio tests on asyncio only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_in_memory_store() -> Iterator[None]:
    """The in-memory store is process-wide; isolate every test."""
    reset_in_memory_store()
    yield
    reset_in_memory_store()


@pytest.fixture
def mock_provider() -> MockEmbeddingProvider:
    """Small deterministic embedding provider."""
    return MockEmbeddingProvider(dimensions=64)


@pytest.fixture
def service_config() -> RagServiceConfig:
    """Service config with mock embeddings and no debounce."""
    return RagServiceConfig(
        debounce_delay=0.0,
        write_stability_delay=0.0,
        embedding=EmbeddingConfig(provider="mock", dimensions=64, batch_size=50),
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Empty workspace directory.

    Returns:
        Path to the workspace root.
    """
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Drop handlers added by configure_logging so they never outlive a test."""
    yield
    package_logger = logging.getLogger("rag_index_kit")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
