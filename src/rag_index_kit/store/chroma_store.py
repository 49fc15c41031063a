"""ChromaDB vector store backend."""

import logging
from typing import Any

from rag_index_kit.constants import CHROMA_GET_PAGE_SIZE, VECTOR_DB_CHROMA
from rag_index_kit.embeddings.base import EmbeddingProvider
from rag_index_kit.store.base import VectorStoreBackend
from rag_index_kit.store.config import ChromaDbConfig
from rag_index_kit.store.filters import MetadataFilter, to_chroma_where
from rag_index_kit.store.models import IndexedItem, IndexStatus, QueryResult

logger = logging.getLogger(__name__)

# Cosine space makes distance = 1 - cosine similarity
HNSW_CONFIG: dict[str, str | int] = {
    "hnsw:space": "cosine",
    "hnsw:construction_ef": 200,
    "hnsw:M": 16,
}


def sanitize_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    """Keep only scalar values Chroma can store."""
    return {
        key: value
        for key, value in metadata.items()
        if isinstance(value, str | int | float | bool)
    }


class ChromaBackend(VectorStoreBackend):
    """Collection-backed store using a persistent, HTTP or ephemeral client.

    Items without a vector are embedded with the configured provider before
    they are written.
    """

    def __init__(
        self,
        config: ChromaDbConfig,
        embedding_provider: EmbeddingProvider,
        client: Any = None,
    ):
        """Initialize the backend.

        Args:
            config: Chroma configuration variant.
            embedding_provider: Provider for items that arrive without vectors.
            client: Pre-built chromadb client (tests); built from config otherwise.
        """
        self._config = config
        self._embedding_provider = embedding_provider
        self._client = client if client is not None else self._create_client(config)
        self._collection = self._client.get_or_create_collection(
            name=config.collection_name,
            metadata=HNSW_CONFIG,
        )
        logger.info(f"ChromaDB collection ready: {config.collection_name}")

    @staticmethod
    def _create_client(config: ChromaDbConfig) -> Any:
        import chromadb
        from chromadb.config import Settings

        settings = Settings(anonymized_telemetry=False, allow_reset=True)
        if config.path:
            logger.debug(f"Opening persistent ChromaDB at {config.path}")
            return chromadb.PersistentClient(path=config.path, settings=settings)
        if config.host:
            logger.debug(f"Connecting to ChromaDB at {config.host}:{config.port}")
            return chromadb.HttpClient(host=config.host, port=config.port, settings=settings)
        logger.debug("Using ephemeral ChromaDB client")
        return chromadb.EphemeralClient(settings=settings)

    @property
    def provider(self) -> str:
        return VECTOR_DB_CHROMA

    def upsert(self, items: list[IndexedItem]) -> None:
        missing = [i for i, item in enumerate(items) if not item.vector]
        vectors = [item.vector for item in items]
        if missing:
            result = self._embedding_provider.embed([items[i].content for i in missing])
            for i, embedding in zip(missing, result.embeddings, strict=True):
                vectors[i] = embedding

        self._collection.upsert(
            ids=[item.id for item in items],
            embeddings=vectors,
            documents=[item.content for item in items],
            metadatas=[sanitize_metadata(item.metadata) for item in items],
        )

    def query(
        self,
        vector: list[float],
        top_k: int,
        where: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        kwargs: dict[str, Any] = {
            "query_embeddings": [vector],
            "n_results": top_k,
            "include": ["documents", "metadatas", "distances"],
        }
        if where:
            kwargs["where"] = to_chroma_where(where)
        results = self._collection.query(**kwargs)

        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits = []
        for i, item_id in enumerate(ids):
            item = IndexedItem(
                id=item_id,
                content=documents[i] if documents and documents[i] is not None else "",
                vector=None,
                metadata=dict(metadatas[i] or {}) if metadatas else {},
            )
            distance = float(distances[i]) if distances else 1.0
            hits.append(QueryResult(item=item, score=1.0 - distance))
        return hits

    def delete(self, ids: list[str]) -> None:
        self._collection.delete(ids=ids)

    def delete_where(self, where: MetadataFilter) -> int:
        self._collection.delete(where=to_chroma_where(where))
        return -1

    def _paged_get(self, where: MetadataFilter | None, include: list[str]) -> list[dict[str, Any]]:
        pages = []
        offset = 0
        while True:
            kwargs: dict[str, Any] = {
                "include": include,
                "limit": CHROMA_GET_PAGE_SIZE,
                "offset": offset,
            }
            if where:
                kwargs["where"] = to_chroma_where(where)
            page = self._collection.get(**kwargs)
            page_ids = page.get("ids") or []
            pages.append(page)
            if len(page_ids) < CHROMA_GET_PAGE_SIZE:
                return pages
            offset += len(page_ids)

    def get_all_ids(self) -> list[str]:
        ids: list[str] = []
        for page in self._paged_get(None, include=[]):
            ids.extend(page.get("ids") or [])
        return ids

    def list_metadata(
        self, where: MetadataFilter | None = None
    ) -> list[tuple[str, dict[str, Any]]]:
        pairs = []
        for page in self._paged_get(where, include=["metadatas"]):
            page_ids = page.get("ids") or []
            metadatas = page.get("metadatas") or [None] * len(page_ids)
            for item_id, metadata in zip(page_ids, metadatas, strict=False):
                pairs.append((item_id, dict(metadata or {})))
        return pairs

    def status(self) -> IndexStatus:
        return IndexStatus(count=self._collection.count(), name=self._config.collection_name)
