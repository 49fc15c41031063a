"""Metadata filters shared by all vector store backends.

A filter maps metadata keys to conditions. A plain value means equality;
``NotEqual(value)`` excludes that value. All clauses must hold.

    {"file_path": "a.ts"}
    {"file_path": "a.ts", "index_session": NotEqual("3f2a...")}
"""

from dataclasses import dataclass
from typing import Any

MetadataFilter = dict[str, Any]


@dataclass(frozen=True)
class NotEqual:
    """Match items whose metadata value differs from ``value``."""

    value: Any


def matches_filter(metadata: dict[str, Any], where: MetadataFilter) -> bool:
    """Evaluate a filter against one item's metadata.

    A missing key never equals a value, and always satisfies NotEqual.
    """
    for key, condition in where.items():
        present = key in metadata
        if isinstance(condition, NotEqual):
            if present and metadata[key] == condition.value:
                return False
        elif not present or metadata[key] != condition:
            return False
    return True


def _operator_clause(key: str, condition: Any) -> dict[str, Any]:
    if isinstance(condition, NotEqual):
        return {key: {"$ne": condition.value}}
    return {key: {"$eq": condition}}


def to_chroma_where(where: MetadataFilter) -> dict[str, Any]:
    """Translate to ChromaDB ``where`` syntax.

    Chroma rejects multi-key dicts, so several clauses are wrapped in ``$and``.
    """
    clauses = [_operator_clause(key, condition) for key, condition in where.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def to_pinecone_filter(where: MetadataFilter) -> dict[str, Any]:
    """Translate to Pinecone metadata filter syntax (keys are implicitly ANDed)."""
    result: dict[str, Any] = {}
    for key, condition in where.items():
        result.update(_operator_clause(key, condition))
    return result
