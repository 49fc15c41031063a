"""Index manager: one async interface over the vector store backends.

The backend is chosen once from the ``VectorDbConfig`` variant and never
changes for the lifetime of the manager. Every backend failure is
re-raised as ``IndexManagerError`` naming the operation, e.g.
``"Upsert failed: <cause>"``.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar, assert_never

from rag_index_kit.constants import META_CHUNK_INDEX, META_FILE_MTIME, META_FILE_PATH
from rag_index_kit.embeddings.base import EmbeddingProvider
from rag_index_kit.exceptions import ConfigurationError, IndexManagerError, NotInitializedError
from rag_index_kit.store.base import VectorStoreBackend
from rag_index_kit.store.config import (
    ChromaDbConfig,
    InMemoryConfig,
    PineconeConfig,
    parse_vector_db_config,
)
from rag_index_kit.store.filters import MetadataFilter
from rag_index_kit.store.memory import InMemoryBackend, InMemoryStore
from rag_index_kit.store.models import IndexedItem, IndexStatus, QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

AnyVectorDbConfig = InMemoryConfig | ChromaDbConfig | PineconeConfig


class IndexManager:
    """Vector store facade used by the sync service and query callers.

    Use ``await IndexManager.create(config, embedding_provider)``. An
    instance built with the constructor stays uninitialized until
    ``initialize()`` completes, and every operation on it raises
    ``NotInitializedError`` until then.
    """

    def __init__(self, config: AnyVectorDbConfig | dict[str, Any]):
        """Validate the config variant without opening any client.

        Raises:
            ConfigurationError: If the config does not describe a known backend.
        """
        self.config: AnyVectorDbConfig = parse_vector_db_config(config)
        self._backend: VectorStoreBackend | None = None

    @classmethod
    async def create(
        cls,
        config: AnyVectorDbConfig | dict[str, Any],
        embedding_provider: EmbeddingProvider | None = None,
    ) -> "IndexManager":
        """Build a ready-to-use manager.

        Args:
            config: Backend configuration (variant or raw mapping).
            embedding_provider: Required by the chromadb backend.

        Returns:
            Initialized IndexManager.

        Raises:
            ConfigurationError: Invalid config or missing embedding provider.
            IndexManagerError: The backend client could not be opened.
        """
        manager = cls(config)
        await manager.initialize(embedding_provider)
        return manager

    async def initialize(self, embedding_provider: EmbeddingProvider | None = None) -> None:
        """Open backend client handles."""
        if self._backend is not None:
            return
        try:
            self._backend = await self._open_backend(embedding_provider)
        except ConfigurationError:
            raise
        except Exception as e:
            raise IndexManagerError(
                "IndexManager initialization", e, provider=self.config.provider
            ) from e
        logger.info(f"IndexManager initialized with provider: {self.config.provider}")

    async def _open_backend(
        self, embedding_provider: EmbeddingProvider | None
    ) -> VectorStoreBackend:
        config = self.config
        match config:
            case InMemoryConfig():
                return InMemoryBackend(InMemoryStore.shared())
            case ChromaDbConfig():
                if embedding_provider is None:
                    raise ConfigurationError(
                        "ChromaDB provider requires an embedding provider",
                        key="vector_db.provider",
                    )
                from rag_index_kit.store.chroma_store import ChromaBackend

                return await asyncio.to_thread(ChromaBackend, config, embedding_provider)
            case PineconeConfig():
                from rag_index_kit.store.pinecone_store import PineconeBackend

                return await asyncio.to_thread(PineconeBackend, config)
            case _:
                assert_never(config)

    def is_initialized(self) -> bool:
        """Whether backend handles are open."""
        return self._backend is not None

    @property
    def provider(self) -> str:
        return self.config.provider

    def _require_backend(self) -> VectorStoreBackend:
        if self._backend is None:
            raise NotInitializedError()
        return self._backend

    async def _call(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        backend = self._require_backend()
        try:
            if backend.blocking:
                return await asyncio.to_thread(fn, *args)
            return fn(*args)
        except Exception as e:
            logger.error(f"{operation} failed on {backend.provider}: {e}")
            raise IndexManagerError(operation, e, provider=backend.provider) from e

    async def upsert_items(self, items: list[IndexedItem]) -> None:
        """Write items keyed by id, overwriting existing ones."""
        backend = self._require_backend()
        if not items:
            return
        await self._call("Upsert", backend.upsert, list(items))
        logger.debug(f"Upserted {len(items)} items into {backend.provider}")

    async def query_index(
        self,
        vector: list[float],
        top_k: int = 5,
        filter: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        """Return up to ``top_k`` results, most similar first."""
        backend = self._require_backend()
        if top_k <= 0:
            return []
        results = await self._call("Query", backend.query, list(vector), top_k, filter or None)
        return sorted(results, key=lambda r: r.score, reverse=True)[:top_k]

    async def delete_items(self, ids: list[str]) -> None:
        """Delete items by id. Unknown ids are not an error."""
        backend = self._require_backend()
        if not ids:
            return
        await self._call("Delete", backend.delete, list(ids))
        logger.debug(f"Deleted {len(ids)} items from {backend.provider}")

    async def delete_where(self, filter: MetadataFilter) -> int:
        """Delete every item whose metadata matches ``filter``.

        An empty filter would match everything, so it is refused.

        Returns:
            Number of deleted items (-1 when the backend does not report it,
            0 when the call was refused).
        """
        backend = self._require_backend()
        if not filter:
            logger.warning("delete_where called with an empty filter; refusing to delete all items")
            return 0
        deleted = await self._call("delete_where", backend.delete_where, dict(filter))
        logger.debug(f"delete_where {filter} removed {deleted} items")
        return deleted

    async def get_all_ids(self) -> list[str]:
        """Every item id in the store."""
        backend = self._require_backend()
        return await self._call("get_all_ids", backend.get_all_ids)

    async def get_chunks_metadata_by_file_path(self, file_path: str) -> list[dict[str, Any]]:
        """Metadata of a file's stored chunks, ordered by chunk index.

        Each entry includes the item ``id``.
        """
        backend = self._require_backend()
        pairs = await self._call(
            "get_chunks_metadata_by_file_path",
            backend.list_metadata,
            {META_FILE_PATH: file_path},
        )
        chunks = [{"id": item_id, **metadata} for item_id, metadata in pairs]

        def sort_key(entry: dict[str, Any]) -> tuple[int, str]:
            index = entry.get(META_CHUNK_INDEX)
            return (index if isinstance(index, int) else -1, entry["id"])

        return sorted(chunks, key=sort_key)

    async def get_all_file_states(self) -> dict[str, float]:
        """Reduce all items to ``file_path -> newest file_mtime``.

        Items without a string ``file_path`` or a numeric ``file_mtime`` are skipped.
        """
        backend = self._require_backend()
        pairs = await self._call("get_all_file_states", backend.list_metadata)

        states: dict[str, float] = {}
        skipped = 0
        for _, metadata in pairs:
            path = metadata.get(META_FILE_PATH)
            mtime = metadata.get(META_FILE_MTIME)
            if (
                not isinstance(path, str)
                or isinstance(mtime, bool)
                or not isinstance(mtime, int | float)
            ):
                skipped += 1
                continue
            if path not in states or mtime > states[path]:
                states[path] = float(mtime)

        if skipped:
            logger.debug(f"Skipped {skipped} items without file state metadata")
        return states

    async def get_status(self) -> IndexStatus:
        """Item count and collection name."""
        backend = self._require_backend()
        return await self._call("get_status", backend.status)
