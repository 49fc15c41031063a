"""Data models for chunking and the vector store.

Documents and chunks are transient and produced per indexing pass.
IndexedItems are what the backends persist.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from rag_index_kit.constants import (
    IN_MEMORY_STORE_NAME,
    ITEM_ID_SEPARATOR,
    META_CHUNK_INDEX,
    META_FILE_MTIME,
    META_FILE_PATH,
)

Metadata = dict[str, Any]


@dataclass(frozen=True)
class Document:
    """Source content for one indexing pass."""

    id: str
    content: str
    metadata: Metadata = field(default_factory=dict)


@dataclass
class Chunk:
    """A contiguous span of a document.

    Offsets index into the original document string; ``-1`` means the
    span could not be attributed.
    """

    id: str
    content: str
    start_position: int
    end_position: int
    metadata: Metadata = field(default_factory=dict)

    @property
    def chunk_index(self) -> int | None:
        """Ordinal of this chunk within its document."""
        value = self.metadata.get(META_CHUNK_INDEX)
        return value if isinstance(value, int) else None

    def to_indexed_item(
        self,
        item_id: str,
        vector: list[float],
        extra_metadata: Metadata | None = None,
    ) -> "IndexedItem":
        """Attach an embedding and a durable id."""
        metadata = dict(self.metadata)
        if extra_metadata:
            metadata.update(extra_metadata)
        return IndexedItem(
            id=item_id,
            content=self.content,
            vector=list(vector),
            start_position=self.start_position,
            end_position=self.end_position,
            metadata=metadata,
        )


@dataclass
class IndexedItem:
    """A chunk with its embedding, keyed by a durable id."""

    id: str
    content: str
    vector: list[float] | None
    metadata: Metadata = field(default_factory=dict)
    start_position: int = -1
    end_position: int = -1

    @property
    def file_path(self) -> str | None:
        """Relative path of the source file, if recorded."""
        value = self.metadata.get(META_FILE_PATH)
        return value if isinstance(value, str) else None

    @property
    def file_mtime(self) -> float | None:
        """Source file mtime at indexing time, if recorded."""
        value = self.metadata.get(META_FILE_MTIME)
        if isinstance(value, bool) or not isinstance(value, int | float):
            return None
        return float(value)

    def without_vector(self) -> "IndexedItem":
        """Copy of this item with the vector dropped."""
        return replace(self, vector=None, metadata=dict(self.metadata))

    @staticmethod
    def make_id(relative_path: str, chunk_index: int) -> str:
        """Durable store key for a file chunk."""
        return f"{relative_path}{ITEM_ID_SEPARATOR}{chunk_index}"


@dataclass
class QueryResult:
    """One similarity search hit."""

    item: IndexedItem
    score: float


@dataclass
class IndexStatus:
    """Item count and backend collection name."""

    count: int
    name: str = IN_MEMORY_STORE_NAME

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"count": self.count, "name": self.name}
