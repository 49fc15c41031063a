"""Constants for rag-index-kit.

Magic strings and numbers used across the chunker, the vector store
backends and the sync service live here.

Constants are organized by domain:
- Chunking defaults
- Chunk metadata keys
- Vector store providers and limits
- Embedding providers
- Sync service defaults
- Logging
"""

from typing import Final

# =============================================================================
# Chunking
# =============================================================================

DEFAULT_MAX_CHUNK_SIZE: Final[int] = 16000  # characters
DEFAULT_CHUNK_OVERLAP: Final[int] = 200  # characters
MAX_AST_DEPTH: Final[int] = 200

DEFAULT_DOCUMENT_ID: Final[str] = "code_snippet"
CHUNK_ID_SEPARATOR: Final[str] = "::chunk_"

FALLBACK_WARNING_NO_LANGUAGE: Final[str] = "Fallback text splitting applied (no language)"
FALLBACK_WARNING_NO_AST_CHUNKS: Final[str] = "Fallback text splitting applied (no AST chunks)"
FALLBACK_WARNING_PARSE_ERROR: Final[str] = (
    "Fallback text splitting applied (parsing/chunking error)"
)
FALLBACK_WARNING_DEPTH: Final[str] = "Fallback text splitting applied (syntax tree too deep)"

# =============================================================================
# Chunk / Item Metadata Keys
# =============================================================================

META_CHUNK_INDEX: Final[str] = "chunk_index"
META_ORIGINAL_ID: Final[str] = "original_id"
META_LANGUAGE: Final[str] = "language"
META_NODE_TYPE: Final[str] = "node_type"
META_START_LINE: Final[str] = "start_line"
META_END_LINE: Final[str] = "end_line"
META_WARNING: Final[str] = "warning"
META_ERROR: Final[str] = "error"
META_FALLBACK_INDEX: Final[str] = "fallback_index"
META_FALLBACK_TOTAL: Final[str] = "fallback_total"
META_FILE_PATH: Final[str] = "file_path"
META_FILE_MTIME: Final[str] = "file_mtime"
META_SOURCE: Final[str] = "source"
META_INDEX_SESSION: Final[str] = "index_session"
META_CONTENT: Final[str] = "content"

ITEM_ID_SEPARATOR: Final[str] = "::"

# =============================================================================
# Vector Store Providers
# =============================================================================

VECTOR_DB_IN_MEMORY: Final[str] = "in-memory"
VECTOR_DB_CHROMA: Final[str] = "chromadb"
VECTOR_DB_PINECONE: Final[str] = "pinecone"
VALID_VECTOR_DB_PROVIDERS: Final[tuple[str, ...]] = (
    VECTOR_DB_IN_MEMORY,
    VECTOR_DB_CHROMA,
    VECTOR_DB_PINECONE,
)

IN_MEMORY_STORE_NAME: Final[str] = "in-memory-store"
DEFAULT_CHROMA_COLLECTION: Final[str] = "rag_index_collection"
DEFAULT_CHROMA_PORT: Final[int] = 8000
CHROMA_GET_PAGE_SIZE: Final[int] = 1000

# Pinecone request ceilings
PINECONE_UPSERT_BATCH_SIZE: Final[int] = 100
PINECONE_DELETE_BATCH_SIZE: Final[int] = 1000
PINECONE_LIST_PAGE_SIZE: Final[int] = 100
PINECONE_FETCH_BATCH_SIZE: Final[int] = 100

# =============================================================================
# Embedding Providers
# =============================================================================

EMBEDDING_PROVIDER_MOCK: Final[str] = "mock"
EMBEDDING_PROVIDER_OLLAMA: Final[str] = "ollama"
EMBEDDING_PROVIDER_HTTP: Final[str] = "http"
VALID_EMBEDDING_PROVIDERS: Final[tuple[str, ...]] = (
    EMBEDDING_PROVIDER_MOCK,
    EMBEDDING_PROVIDER_OLLAMA,
    EMBEDDING_PROVIDER_HTTP,
)

DEFAULT_EMBEDDING_PROVIDER: Final[str] = EMBEDDING_PROVIDER_MOCK
DEFAULT_OLLAMA_MODEL: Final[str] = "nomic-embed-text"
DEFAULT_OLLAMA_BASE_URL: Final[str] = "http://localhost:11434"
DEFAULT_EMBEDDING_DIMENSIONS: Final[int] = 768
DEFAULT_EMBEDDING_BATCH_SIZE: Final[int] = 50
DEFAULT_EMBEDDING_TIMEOUT: Final[float] = 30.0
EMBEDDING_MAX_CHARS: Final[int] = 6000

# =============================================================================
# Sync Service
# =============================================================================

DEFAULT_DEBOUNCE_DELAY: Final[float] = 2.0  # seconds
DEFAULT_WRITE_STABILITY_DELAY: Final[float] = 0.5  # seconds
DEFAULT_QUERY_TOP_K: Final[int] = 5
SHUTDOWN_TASK_TIMEOUT: Final[float] = 10.0  # seconds

CONFIG_DIR: Final[str] = ".rag-index"
CONFIG_FILE: Final[str] = "config.yaml"
GITIGNORE_FILE: Final[str] = ".gitignore"

# Always ignored regardless of configuration
ALWAYS_IGNORED_DIRS: Final[frozenset[str]] = frozenset({".git", "node_modules"})

DEFAULT_EXCLUDE_PATTERNS: Final[tuple[str, ...]] = (
    ".git",
    ".git/**",
    ".rag-index",
    ".rag-index/**",
    # Dependencies (match at any level for nested node_modules)
    "node_modules",
    "node_modules/**",
    "**/node_modules/**",
    # Python caches
    "__pycache__",
    "__pycache__/**",
    "**/__pycache__/**",
    ".mypy_cache/**",
    ".pytest_cache/**",
    ".ruff_cache/**",
    # Virtual environments
    ".venv/**",
    "venv/**",
    # Build output
    "dist/**",
    "build/**",
    "*.egg-info/**",
    # Binaries and lock files
    "*.pyc",
    "*.so",
    "*.lock",
    "package-lock.json",
    # Sensitive files
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
)

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL_DEBUG: Final[str] = "DEBUG"
LOG_LEVEL_INFO: Final[str] = "INFO"
LOG_LEVEL_WARNING: Final[str] = "WARNING"
LOG_LEVEL_ERROR: Final[str] = "ERROR"
VALID_LOG_LEVELS: Final[tuple[str, ...]] = (
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_INFO,
    LOG_LEVEL_WARNING,
    LOG_LEVEL_ERROR,
)

PACKAGE_LOGGER_NAME: Final[str] = "rag_index_kit"
DEFAULT_LOG_MAX_SIZE_MB: Final[int] = 10
DEFAULT_LOG_BACKUP_COUNT: Final[int] = 3
