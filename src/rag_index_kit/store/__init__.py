"""Vector store package.

- config.py: VectorDbConfig variants (in-memory, chromadb, pinecone)
- models.py: Document, Chunk, IndexedItem, QueryResult, IndexStatus
- filters.py: Equality / NotEqual metadata filters
- memory.py, chroma_store.py, pinecone_store.py: Backends
- manager.py: IndexManager facade
"""

from rag_index_kit.store.config import (
    ChromaDbConfig,
    InMemoryConfig,
    PineconeConfig,
    VectorDbConfig,
    parse_vector_db_config,
)
from rag_index_kit.store.filters import MetadataFilter, NotEqual, matches_filter
from rag_index_kit.store.manager import IndexManager
from rag_index_kit.store.memory import InMemoryStore, cosine_similarity, reset_in_memory_store
from rag_index_kit.store.models import Chunk, Document, IndexedItem, IndexStatus, QueryResult

__all__ = [
    "IndexManager",
    "VectorDbConfig",
    "InMemoryConfig",
    "ChromaDbConfig",
    "PineconeConfig",
    "parse_vector_db_config",
    "MetadataFilter",
    "NotEqual",
    "matches_filter",
    "InMemoryStore",
    "cosine_similarity",
    "reset_in_memory_store",
    "Chunk",
    "Document",
    "IndexedItem",
    "IndexStatus",
    "QueryResult",
]
