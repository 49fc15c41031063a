"""Chunking, discovery, watching and incremental sync."""

from rag_index_kit.indexing.chunker import BoundaryChunker, chunk, split_text_with_overlap
from rag_index_kit.indexing.ignore import IgnoreMatcher
from rag_index_kit.indexing.service import RagIndexService, ServiceState, reconcile
from rag_index_kit.indexing.watcher import FileEvent, FileWatcher, discover_files

__all__ = [
    "BoundaryChunker",
    "chunk",
    "split_text_with_overlap",
    "IgnoreMatcher",
    "RagIndexService",
    "ServiceState",
    "reconcile",
    "FileEvent",
    "FileWatcher",
    "discover_files",
]
