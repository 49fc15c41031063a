"""Backend interface for the index manager."""

from abc import ABC, abstractmethod
from typing import Any

from rag_index_kit.store.filters import MetadataFilter
from rag_index_kit.store.models import IndexedItem, IndexStatus, QueryResult


class VectorStoreBackend(ABC):
    """Synchronous operations every vector store backend provides.

    IndexManager validates inputs, wraps errors and decides whether a call
    runs on a worker thread (``blocking``) or inline.
    """

    #: Whether calls perform network or disk I/O.
    blocking: bool = True

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider identifier for logging."""
        ...

    @abstractmethod
    def upsert(self, items: list[IndexedItem]) -> None:
        """Insert or overwrite items by id."""
        ...

    @abstractmethod
    def query(
        self,
        vector: list[float],
        top_k: int,
        where: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        """Return up to ``top_k`` hits, most similar first."""
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete items by id. Unknown ids are ignored."""
        ...

    @abstractmethod
    def delete_where(self, where: MetadataFilter) -> int:
        """Delete items matching a non-empty filter.

        Returns:
            Number of items deleted, or -1 if the backend does not report it.
        """
        ...

    @abstractmethod
    def get_all_ids(self) -> list[str]:
        """All item ids in the store."""
        ...

    @abstractmethod
    def list_metadata(
        self, where: MetadataFilter | None = None
    ) -> list[tuple[str, dict[str, Any]]]:
        """``(id, metadata)`` pairs for matching items (all items without a filter)."""
        ...

    @abstractmethod
    def status(self) -> IndexStatus:
        """Item count and collection/index name."""
        ...
