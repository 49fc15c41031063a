"""In-process vector store backend.

The item map is shared by every IndexManager in the process through the
``InMemoryStore.shared()`` singleton. It is only cleared explicitly with
``reset_in_memory_store()``, which exists for tests.
"""

import logging
import math
from typing import Any, ClassVar

from rag_index_kit.constants import IN_MEMORY_STORE_NAME, VECTOR_DB_IN_MEMORY
from rag_index_kit.store.base import VectorStoreBackend
from rag_index_kit.store.filters import MetadataFilter, matches_filter
from rag_index_kit.store.models import IndexedItem, IndexStatus, QueryResult

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 for empty vectors, mismatched dimensions or a zero-magnitude
    operand.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class InMemoryStore:
    """Process-wide item map keyed by item id."""

    _instance: ClassVar["InMemoryStore | None"] = None

    def __init__(self) -> None:
        self.items: dict[str, IndexedItem] = {}

    @classmethod
    def shared(cls) -> "InMemoryStore":
        """Return the process-wide store, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def clear(self) -> None:
        self.items.clear()


def reset_in_memory_store() -> None:
    """Clear the shared in-memory store. Intended for tests."""
    InMemoryStore.shared().clear()


class InMemoryBackend(VectorStoreBackend):
    """Brute-force cosine search over the shared in-memory map."""

    blocking = False

    def __init__(self, store: InMemoryStore | None = None):
        self._store = store or InMemoryStore.shared()

    @property
    def provider(self) -> str:
        return VECTOR_DB_IN_MEMORY

    def upsert(self, items: list[IndexedItem]) -> None:
        for item in items:
            self._store.items[item.id] = item

    def query(
        self,
        vector: list[float],
        top_k: int,
        where: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        results = []
        for item in self._store.items.values():
            if where and not matches_filter(item.metadata, where):
                continue
            score = cosine_similarity(vector, item.vector or [])
            results.append(QueryResult(item=item.without_vector(), score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def delete(self, ids: list[str]) -> None:
        for item_id in ids:
            self._store.items.pop(item_id, None)

    def delete_where(self, where: MetadataFilter) -> int:
        doomed = [
            item_id
            for item_id, item in self._store.items.items()
            if matches_filter(item.metadata, where)
        ]
        self.delete(doomed)
        return len(doomed)

    def get_all_ids(self) -> list[str]:
        return list(self._store.items.keys())

    def list_metadata(
        self, where: MetadataFilter | None = None
    ) -> list[tuple[str, dict[str, Any]]]:
        return [
            (item_id, dict(item.metadata))
            for item_id, item in self._store.items.items()
            if not where or matches_filter(item.metadata, where)
        ]

    def status(self) -> IndexStatus:
        return IndexStatus(count=len(self._store.items), name=IN_MEMORY_STORE_NAME)
