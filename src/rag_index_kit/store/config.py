"""Vector database configuration.

``VectorDbConfig`` is a closed set of variants discriminated by the
``provider`` field. Each variant only carries the fields its backend needs.
"""

import logging
import os
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rag_index_kit.constants import (
    DEFAULT_CHROMA_COLLECTION,
    DEFAULT_CHROMA_PORT,
    PINECONE_DELETE_BATCH_SIZE,
    PINECONE_LIST_PAGE_SIZE,
    PINECONE_UPSERT_BATCH_SIZE,
)
from rag_index_kit.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class InMemoryConfig(BaseModel):
    """Process-local store, mainly for tests and small workspaces."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: Literal["in-memory"] = "in-memory"


class ChromaDbConfig(BaseModel):
    """ChromaDB backend.

    ``path`` selects a persistent local client, ``host`` an HTTP client.
    With neither set an ephemeral client is used.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: Literal["chromadb"] = "chromadb"
    path: str | None = Field(default=None, description="Local persistence directory")
    host: str | None = Field(default=None, description="Chroma server host")
    port: int = Field(default=DEFAULT_CHROMA_PORT, ge=1, le=65535)
    collection_name: str = Field(default=DEFAULT_CHROMA_COLLECTION, min_length=1)


class PineconeConfig(BaseModel):
    """Pinecone serverless/pod index."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: Literal["pinecone"] = "pinecone"
    api_key: str = Field(..., min_length=1)
    index_name: str = Field(..., min_length=1)
    namespace: str | None = None
    upsert_batch_size: int = Field(default=PINECONE_UPSERT_BATCH_SIZE, ge=1)
    delete_batch_size: int = Field(default=PINECONE_DELETE_BATCH_SIZE, ge=1)
    list_page_size: int = Field(default=PINECONE_LIST_PAGE_SIZE, ge=1)


VectorDbConfig = Annotated[
    InMemoryConfig | ChromaDbConfig | PineconeConfig,
    Field(discriminator="provider"),
]

_vector_db_adapter: TypeAdapter[InMemoryConfig | ChromaDbConfig | PineconeConfig] = TypeAdapter(
    VectorDbConfig
)


def parse_vector_db_config(
    data: dict[str, Any] | InMemoryConfig | ChromaDbConfig | PineconeConfig | None,
) -> InMemoryConfig | ChromaDbConfig | PineconeConfig:
    """Validate a raw mapping into a vector database config variant.

    Args:
        data: Raw mapping (e.g. from YAML), an already-built variant, or None
            for the in-memory default.

    Returns:
        The validated config variant.

    Raises:
        ConfigurationError: If the provider is unknown or fields are invalid.
    """
    if data is None:
        return InMemoryConfig()
    if isinstance(data, InMemoryConfig | ChromaDbConfig | PineconeConfig):
        return data

    data = dict(data)
    api_key = data.get("api_key")
    if isinstance(api_key, str):
        if api_key.startswith("${") and api_key.endswith("}"):
            data["api_key"] = os.environ.get(api_key[2:-1], "")
        elif api_key:
            logger.warning(
                "API key appears to be hardcoded in config. "
                "For security, use ${ENV_VAR_NAME} syntax instead."
            )
    try:
        return _vector_db_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid vector_db config: {e}", key="vector_db") from e


def vector_db_config_to_dict(
    config: InMemoryConfig | ChromaDbConfig | PineconeConfig,
) -> dict[str, Any]:
    """Serialize a config variant, dropping unset optional fields."""
    return config.model_dump(exclude_none=True)
