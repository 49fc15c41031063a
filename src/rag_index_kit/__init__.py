"""rag-index-kit: syntax-aware chunking and incremental vector indexing."""

try:
    from importlib.metadata import version

    __version__ = version("rag-index-kit")
except Exception:
    __version__ = "0.0.0-dev"
