"""Pinecone vector store backend.

Pinecone serverless indexes have no delete-by-metadata, so ``delete_where``
lists ids, fetches metadata page by page and deletes matches by id. A filter
with a ``file_path`` equality lists only ids under ``"<file_path>::"``, so
per-file cleanup costs O(chunks in the file). Any other filter lists the whole
namespace, which costs O(index size) requests per call.
"""

import logging
from collections.abc import Iterator
from typing import Any

from rag_index_kit.constants import (
    ITEM_ID_SEPARATOR,
    META_CONTENT,
    META_FILE_PATH,
    PINECONE_FETCH_BATCH_SIZE,
    VECTOR_DB_PINECONE,
)
from rag_index_kit.store.base import VectorStoreBackend
from rag_index_kit.store.config import PineconeConfig
from rag_index_kit.store.filters import MetadataFilter, matches_filter, to_pinecone_filter
from rag_index_kit.store.models import IndexedItem, IndexStatus, QueryResult

logger = logging.getLogger(__name__)


def _batched(values: list[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def sanitize_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Keep values Pinecone accepts: scalars and lists of strings."""
    clean: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, str | int | float | bool):
            clean[key] = value
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            clean[key] = value
    return clean


def _id_prefix(where: MetadataFilter | None) -> str | None:
    """Id prefix shared by every item a filter can match, if the filter pins a file."""
    file_path = where.get(META_FILE_PATH) if where else None
    if isinstance(file_path, str) and file_path:
        return f"{file_path}{ITEM_ID_SEPARATOR}"
    return None


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK response object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PineconeBackend(VectorStoreBackend):
    """Namespace-scoped Pinecone index.

    Chunk content is stored under the ``content`` metadata key so query
    hits can return it.
    """

    def __init__(self, config: PineconeConfig, index: Any = None):
        """Initialize the backend.

        Args:
            config: Pinecone configuration variant.
            index: Pre-built index handle (tests); opened from config otherwise.
        """
        self._config = config
        self._namespace = config.namespace or ""
        if index is None:
            from pinecone import Pinecone

            client = Pinecone(api_key=config.api_key)
            index = client.Index(config.index_name)
        self._index = index
        logger.info(f"Pinecone index ready: {self.display_name}")

    @property
    def provider(self) -> str:
        return VECTOR_DB_PINECONE

    @property
    def display_name(self) -> str:
        """Index name with namespace, e.g. ``docs[project-a]``."""
        return f"{self._config.index_name}[{self._namespace}]"

    def upsert(self, items: list[IndexedItem]) -> None:
        for batch in _batched(items, self._config.upsert_batch_size):
            vectors = []
            for item in batch:
                if not item.vector:
                    raise ValueError(f"Item {item.id} has no vector")
                metadata = sanitize_metadata(item.metadata)
                metadata[META_CONTENT] = item.content
                vectors.append({"id": item.id, "values": item.vector, "metadata": metadata})
            self._index.upsert(vectors=vectors, namespace=self._namespace)
            logger.debug(f"Pinecone upserted batch of {len(vectors)}")

    def query(
        self,
        vector: list[float],
        top_k: int,
        where: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        kwargs: dict[str, Any] = {
            "vector": vector,
            "top_k": top_k,
            "include_metadata": True,
            "include_values": False,
            "namespace": self._namespace,
        }
        if where:
            kwargs["filter"] = to_pinecone_filter(where)
        response = self._index.query(**kwargs)

        hits = []
        for match in _field(response, "matches", []) or []:
            metadata = dict(_field(match, "metadata", None) or {})
            content = metadata.pop(META_CONTENT, "")
            item = IndexedItem(
                id=_field(match, "id"),
                content=content if isinstance(content, str) else "",
                vector=None,
                metadata=metadata,
            )
            hits.append(QueryResult(item=item, score=float(_field(match, "score", 0.0) or 0.0)))
        return hits

    def delete(self, ids: list[str]) -> None:
        for batch in _batched(ids, self._config.delete_batch_size):
            self._index.delete(ids=batch, namespace=self._namespace)

    def delete_where(self, where: MetadataFilter) -> int:
        doomed = [item_id for item_id, _ in self.list_metadata(where)]
        if doomed:
            self.delete(doomed)
        logger.debug(f"Pinecone filtered delete removed {len(doomed)} items")
        return len(doomed)

    def _list_ids(self, prefix: str | None = None) -> list[str]:
        kwargs: dict[str, Any] = {
            "namespace": self._namespace,
            "limit": self._config.list_page_size,
        }
        if prefix:
            kwargs["prefix"] = prefix
        ids: list[str] = []
        for page in self._index.list(**kwargs):
            ids.extend(page)
        return ids

    def get_all_ids(self) -> list[str]:
        return self._list_ids()

    def list_metadata(
        self, where: MetadataFilter | None = None
    ) -> list[tuple[str, dict[str, Any]]]:
        pairs = []
        ids = self._list_ids(_id_prefix(where))
        for batch in _batched(ids, PINECONE_FETCH_BATCH_SIZE):
            response = self._index.fetch(ids=batch, namespace=self._namespace)
            vectors = _field(response, "vectors", {}) or {}
            for item_id in batch:
                record = vectors.get(item_id)
                if record is None:
                    continue
                metadata = dict(_field(record, "metadata", None) or {})
                metadata.pop(META_CONTENT, None)
                if where and not matches_filter(metadata, where):
                    continue
                pairs.append((item_id, metadata))
        return pairs

    def status(self) -> IndexStatus:
        stats = self._index.describe_index_stats()
        if self._config.namespace:
            namespaces = _field(stats, "namespaces", {}) or {}
            summary = namespaces.get(self._namespace)
            count = int(_field(summary, "vector_count", 0) or 0) if summary is not None else 0
        else:
            count = int(_field(stats, "total_vector_count", 0) or 0)
        return IndexStatus(count=count, name=self.display_name)
