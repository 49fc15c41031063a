"""Syntax-boundary-aware chunking.

Content in a language with a tree-sitter grammar is split along syntax
boundaries (functions, classes, comments, top-level blocks). Everything
else, and any content the syntax walk cannot handle, is split into
fixed-size windows that overlap by ``chunk_overlap`` characters.

Chunk offsets are character offsets into the original string. Chunk ids
are ``"<document id>::chunk_<n>"``, so identical input always yields
identical ids.
"""

import bisect
import logging
from typing import Any

from rag_index_kit.config import ChunkingOptions
from rag_index_kit.constants import (
    CHUNK_ID_SEPARATOR,
    DEFAULT_DOCUMENT_ID,
    FALLBACK_WARNING_DEPTH,
    FALLBACK_WARNING_NO_AST_CHUNKS,
    FALLBACK_WARNING_NO_LANGUAGE,
    FALLBACK_WARNING_PARSE_ERROR,
    META_CHUNK_INDEX,
    META_END_LINE,
    META_ERROR,
    META_FALLBACK_INDEX,
    META_FALLBACK_TOTAL,
    META_FILE_PATH,
    META_LANGUAGE,
    META_NODE_TYPE,
    META_ORIGINAL_ID,
    META_SOURCE,
    META_START_LINE,
    META_WARNING,
)
from rag_index_kit.indexing import languages
from rag_index_kit.store.models import Chunk, Document

logger = logging.getLogger(__name__)


def split_text_with_overlap(
    text: str, max_chunk_size: int, chunk_overlap: int
) -> list[tuple[int, int]]:
    """Split text into overlapping windows.

    The window advances by ``max(1, max_chunk_size - chunk_overlap)`` and
    stops once it reaches the end of the text.

    Returns:
        ``(start, end)`` offsets of each window.
    """
    if not text:
        return []
    if len(text) <= max_chunk_size:
        return [(0, len(text))]

    step = max(1, max_chunk_size - chunk_overlap)
    spans = []
    start = 0
    while start < len(text):
        end = min(start + max_chunk_size, len(text))
        spans.append((start, end))
        if end == len(text):
            break
        start += step
    return spans


class _OffsetIndex:
    """Maps tree-sitter byte offsets to string offsets and offsets to line numbers."""

    def __init__(self, content: str):
        self._ascii = content.isascii()
        self._byte_starts: list[int] = []
        if not self._ascii:
            position = 0
            for char in content:
                self._byte_starts.append(position)
                position += len(char.encode("utf-8"))
        self._length = len(content)
        self._newlines = [i for i, char in enumerate(content) if char == "\n"]

    def char_offset(self, byte_offset: int) -> int:
        if self._ascii:
            return byte_offset
        return min(bisect.bisect_left(self._byte_starts, byte_offset), self._length)

    def line_of(self, offset: int) -> int:
        """1-based line number of the character at ``offset``."""
        return bisect.bisect_left(self._newlines, offset) + 1


class BoundaryChunker:
    """Chunks documents and keeps counts of which path each one took.

    Attributes:
        options: Size and overlap limits.
    """

    def __init__(self, options: ChunkingOptions | None = None):
        """Initialize chunker.

        Args:
            options: Chunking options (defaults when omitted).
        """
        self.options = options or ChunkingOptions()
        self._stats: dict[str, int] = {"syntax": 0, "fallback": 0}

    def get_stats(self) -> dict[str, int]:
        """Documents chunked along syntax boundaries vs. by windows."""
        return self._stats.copy()

    def reset_stats(self) -> None:
        self._stats = {"syntax": 0, "fallback": 0}

    def chunk(
        self,
        content: str,
        language: str | None = None,
        base_metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        """Split content into chunks.

        Never raises for non-empty input: any failure of the syntax path falls
        back to window splitting and is recorded in the chunk metadata.

        Args:
            content: Text to chunk.
            language: Language identifier, or None for plain text.
            base_metadata: Metadata copied onto every chunk. ``file_path`` or
                ``source`` becomes the document id.

        Returns:
            Chunks in document order. Empty input yields an empty list.
        """
        if not content:
            return []

        base = dict(base_metadata or {})
        doc_id = str(base.get(META_FILE_PATH) or base.get(META_SOURCE) or DEFAULT_DOCUMENT_ID)
        document = Document(id=doc_id, content=content, metadata={META_LANGUAGE: language, **base})
        offsets = _OffsetIndex(content)

        if language is None or not languages.has_syntax_support(language):
            reason = (
                FALLBACK_WARNING_NO_LANGUAGE
                if language is None
                else f"Fallback text splitting applied (no syntax support for {language})"
            )
            self._stats["fallback"] += 1
            return self._fallback(document, offsets, {META_WARNING: reason})

        try:
            chunks = self._chunk_syntax(document, language, offsets)
        except Exception as e:  # tree-sitter errors vary by grammar
            logger.warning(f"Syntax chunking failed for {doc_id} ({language}): {e}")
            self._stats["fallback"] += 1
            return self._fallback(
                document,
                offsets,
                {META_WARNING: FALLBACK_WARNING_PARSE_ERROR, META_ERROR: str(e)},
                number_windows=True,
            )

        if not chunks:
            logger.debug(f"No syntax boundaries in {doc_id}, using window splitting")
            self._stats["fallback"] += 1
            return self._fallback(document, offsets, {META_WARNING: FALLBACK_WARNING_NO_AST_CHUNKS})

        self._stats["syntax"] += 1
        logger.debug(f"Chunked {doc_id}: {len(chunks)} chunks ({language})")
        return chunks

    def _make_chunk(
        self,
        document: Document,
        index: int,
        start: int,
        end: int,
        offsets: _OffsetIndex,
        specific: dict[str, Any],
    ) -> Chunk:
        metadata = {
            **document.metadata,
            META_CHUNK_INDEX: index,
            META_ORIGINAL_ID: document.id,
            META_START_LINE: offsets.line_of(start),
            META_END_LINE: offsets.line_of(max(start, end - 1)),
            **specific,
        }
        return Chunk(
            id=f"{document.id}{CHUNK_ID_SEPARATOR}{index}",
            content=document.content[start:end],
            start_position=start,
            end_position=end,
            metadata=metadata,
        )

    def _fallback(
        self,
        document: Document,
        offsets: _OffsetIndex,
        tags: dict[str, Any],
        number_windows: bool = False,
    ) -> list[Chunk]:
        spans = split_text_with_overlap(
            document.content, self.options.max_chunk_size, self.options.chunk_overlap
        )
        chunks = []
        for index, (start, end) in enumerate(spans):
            specific = dict(tags)
            if number_windows:
                specific[META_FALLBACK_INDEX] = index
                specific[META_FALLBACK_TOTAL] = len(spans)
            chunks.append(self._make_chunk(document, index, start, end, offsets, specific))
        return chunks

    def _chunk_syntax(
        self, document: Document, language: str, offsets: _OffsetIndex
    ) -> list[Chunk]:
        boundary_types = languages.LANGUAGE_SPECS[language].boundary_types
        max_size = self.options.max_chunk_size
        max_depth = self.options.max_depth
        tree = languages.parse(document.content, language)
        chunks: list[Chunk] = []

        def emit_windows(start: int, end: int, warning: str) -> None:
            for window_start, window_end in split_text_with_overlap(
                document.content[start:end], max_size, self.options.chunk_overlap
            ):
                chunks.append(
                    self._make_chunk(
                        document,
                        len(chunks),
                        start + window_start,
                        start + window_end,
                        offsets,
                        {META_WARNING: warning},
                    )
                )

        def process_node(node: Any, depth: int) -> None:
            start = offsets.char_offset(node.start_byte)
            end = offsets.char_offset(node.end_byte)
            is_boundary = node.type in boundary_types

            if depth > max_depth:
                if is_boundary and end > start:
                    emit_windows(start, end, FALLBACK_WARNING_DEPTH)
                return

            if is_boundary and end - start <= max_size:
                if end > start:
                    chunks.append(
                        self._make_chunk(
                            document,
                            len(chunks),
                            start,
                            end,
                            offsets,
                            {META_NODE_TYPE: node.type},
                        )
                    )
                return

            emitted_before = len(chunks)
            for child in node.children:
                process_node(child, depth + 1)

            # Oversized boundary with nothing smaller inside it
            if is_boundary and len(chunks) == emitted_before:
                emit_windows(
                    start,
                    end,
                    f"Fallback text splitting applied (oversized {node.type} node)",
                )

        process_node(tree.root_node, 0)
        return chunks


def chunk(
    content: str,
    language: str | None = None,
    options: ChunkingOptions | None = None,
    base_metadata: dict[str, Any] | None = None,
) -> list[Chunk]:
    """Chunk content with a one-off BoundaryChunker.

    See ``BoundaryChunker.chunk``.
    """
    return BoundaryChunker(options).chunk(content, language, base_metadata)
