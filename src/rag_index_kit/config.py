"""Configuration for rag-index-kit.

Configuration is read from ``.rag-index/config.yaml`` in the project root.
Every section is a dataclass validated on construction; the vector
database section is a pydantic discriminated union (see store.config).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from rag_index_kit.constants import (
    CONFIG_DIR,
    CONFIG_FILE,
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_DEBOUNCE_DELAY,
    DEFAULT_EMBEDDING_BATCH_SIZE,
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_PROVIDER,
    DEFAULT_EMBEDDING_TIMEOUT,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_MAX_SIZE_MB,
    DEFAULT_MAX_CHUNK_SIZE,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_WRITE_STABILITY_DELAY,
    EMBEDDING_PROVIDER_HTTP,
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_INFO,
    MAX_AST_DEPTH,
    VALID_EMBEDDING_PROVIDERS,
    VALID_LOG_LEVELS,
)
from rag_index_kit.exceptions import ConfigurationError, ValidationError
from rag_index_kit.settings import get_runtime_settings
from rag_index_kit.store.config import (
    ChromaDbConfig,
    InMemoryConfig,
    PineconeConfig,
    parse_vector_db_config,
    vector_db_config_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkingOptions:
    """Options for the boundary chunker.

    Attributes:
        max_chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive fallback windows.
        max_depth: Syntax tree depth at which the walk stops subdividing.
    """

    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    max_depth: int = MAX_AST_DEPTH

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValidationError: If any configuration value is invalid.
        """
        if self.max_chunk_size <= 0:
            raise ValidationError(
                "max_chunk_size must be positive",
                field="max_chunk_size",
                value=self.max_chunk_size,
                expected="> 0",
            )
        if self.chunk_overlap < 0:
            raise ValidationError(
                "chunk_overlap cannot be negative",
                field="chunk_overlap",
                value=self.chunk_overlap,
                expected=">= 0",
            )
        if self.max_depth <= 0:
            raise ValidationError(
                "max_depth must be positive",
                field="max_depth",
                value=self.max_depth,
                expected="> 0",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChunkingOptions":
        """Create options from dictionary."""
        return cls(
            max_chunk_size=data.get("max_chunk_size", DEFAULT_MAX_CHUNK_SIZE),
            chunk_overlap=data.get("chunk_overlap", DEFAULT_CHUNK_OVERLAP),
            max_depth=data.get("max_depth", MAX_AST_DEPTH),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_chunk_size": self.max_chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "max_depth": self.max_depth,
        }


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider.

    Attributes:
        provider: Embedding provider (mock, ollama, http).
        model: Model name (ollama, http).
        base_url: Ollama API base URL.
        url: Full endpoint URL for the http provider.
        headers: Extra request headers for the http provider.
        dimensions: Vector size (mock provider; hint for the others).
        batch_size: Chunks per embedding request.
        timeout: Request timeout in seconds.
    """

    provider: str = DEFAULT_EMBEDDING_PROVIDER
    model: str = DEFAULT_OLLAMA_MODEL
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS
    batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE
    timeout: float = DEFAULT_EMBEDDING_TIMEOUT

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValidationError: If any configuration value is invalid.
        """
        if self.provider not in VALID_EMBEDDING_PROVIDERS:
            raise ValidationError(
                f"Invalid embedding provider: {self.provider}",
                field="provider",
                value=self.provider,
                expected=f"one of {VALID_EMBEDDING_PROVIDERS}",
            )
        if self.provider == EMBEDDING_PROVIDER_HTTP and not self.url:
            raise ValidationError(
                "http embedding provider requires a url",
                field="url",
                expected="HTTP(S) URL",
            )
        if self.url and not self.url.startswith(("http://", "https://")):
            raise ValidationError(
                f"Invalid embedding URL: {self.url}",
                field="url",
                value=self.url,
                expected="valid HTTP(S) URL",
            )
        if self.dimensions <= 0:
            raise ValidationError(
                "Dimensions must be positive",
                field="dimensions",
                value=self.dimensions,
                expected="positive integer",
            )
        if self.batch_size <= 0:
            raise ValidationError(
                "batch_size must be positive",
                field="batch_size",
                value=self.batch_size,
                expected="positive integer",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmbeddingConfig":
        """Create config from dictionary."""
        return cls(
            provider=data.get("provider", DEFAULT_EMBEDDING_PROVIDER),
            model=data.get("model", DEFAULT_OLLAMA_MODEL),
            base_url=data.get("base_url", DEFAULT_OLLAMA_BASE_URL),
            url=data.get("url"),
            headers=dict(data.get("headers") or {}),
            dimensions=data.get("dimensions", DEFAULT_EMBEDDING_DIMENSIONS),
            batch_size=data.get("batch_size", DEFAULT_EMBEDDING_BATCH_SIZE),
            timeout=data.get("timeout", DEFAULT_EMBEDDING_TIMEOUT),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "provider": self.provider,
            "model": self.model,
            "base_url": self.base_url,
            "dimensions": self.dimensions,
            "batch_size": self.batch_size,
            "timeout": self.timeout,
        }
        if self.url:
            result["url"] = self.url
        if self.headers:
            result["headers"] = dict(self.headers)
        return result


@dataclass
class LogRotationConfig:
    """Configuration for log file rotation.

    Attributes:
        enabled: Whether to rotate the log file.
        max_size_mb: Maximum log file size in megabytes before rotation.
        backup_count: Number of rotated files to keep.
    """

    enabled: bool = True
    max_size_mb: int = DEFAULT_LOG_MAX_SIZE_MB
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_size_mb < 1:
            raise ValidationError(
                "max_size_mb must be at least 1",
                field="max_size_mb",
                value=self.max_size_mb,
                expected=">= 1",
            )
        if self.backup_count < 0:
            raise ValidationError(
                "backup_count cannot be negative",
                field="backup_count",
                value=self.backup_count,
                expected=">= 0",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogRotationConfig":
        """Create config from dictionary."""
        return cls(
            enabled=data.get("enabled", True),
            max_size_mb=data.get("max_size_mb", DEFAULT_LOG_MAX_SIZE_MB),
            backup_count=data.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "max_size_mb": self.max_size_mb,
            "backup_count": self.backup_count,
        }

    def get_max_bytes(self) -> int:
        """Get maximum log file size in bytes."""
        return self.max_size_mb * 1024 * 1024


@dataclass
class RagServiceConfig:
    """Top-level configuration for the sync service.

    Attributes:
        auto_watch_enabled: Start the filesystem watcher from start_watching().
        respect_gitignore: Merge the project's .gitignore into the ignore set.
        debounce_delay: Quiet period in seconds before a changed file is queued.
        write_stability_delay: Seconds a file must stop changing before its
            add/change event is reported.
        include_patterns: If non-empty, only matching files are indexed.
        exclude_patterns: Glob patterns for files to skip.
        chunking: Chunker options.
        embedding: Embedding provider configuration.
        vector_db: Backend selection (one variant, fixed for the session).
        log_level: Logging level.
        log_rotation: Rotation settings for the optional log file.
    """

    auto_watch_enabled: bool = True
    respect_gitignore: bool = True
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    write_stability_delay: float = DEFAULT_WRITE_STABILITY_DELAY
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    chunking: ChunkingOptions = field(default_factory=ChunkingOptions)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_db: InMemoryConfig | ChromaDbConfig | PineconeConfig = field(
        default_factory=InMemoryConfig
    )
    log_level: str = LOG_LEVEL_INFO
    log_rotation: LogRotationConfig = field(default_factory=LogRotationConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValidationError: If any configuration value is invalid.
        """
        if self.debounce_delay < 0:
            raise ValidationError(
                "debounce_delay cannot be negative",
                field="debounce_delay",
                value=self.debounce_delay,
                expected=">= 0",
            )
        if self.write_stability_delay < 0:
            raise ValidationError(
                "write_stability_delay cannot be negative",
                field="write_stability_delay",
                value=self.write_stability_delay,
                expected=">= 0",
            )
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValidationError(
                f"Invalid log level: {self.log_level}",
                field="log_level",
                value=self.log_level,
                expected=f"one of {VALID_LOG_LEVELS}",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RagServiceConfig":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary.

        Returns:
            RagServiceConfig instance.

        Raises:
            ConfigurationError: If the vector_db section is invalid.
            ValidationError: If any other value is invalid.
        """
        return cls(
            auto_watch_enabled=data.get("auto_watch_enabled", True),
            respect_gitignore=data.get("respect_gitignore", True),
            debounce_delay=data.get("debounce_delay", DEFAULT_DEBOUNCE_DELAY),
            write_stability_delay=data.get(
                "write_stability_delay", DEFAULT_WRITE_STABILITY_DELAY
            ),
            include_patterns=list(data.get("include_patterns") or []),
            exclude_patterns=list(data.get("exclude_patterns", DEFAULT_EXCLUDE_PATTERNS) or []),
            chunking=ChunkingOptions.from_dict(data.get("chunking") or {}),
            embedding=EmbeddingConfig.from_dict(data.get("embedding") or {}),
            vector_db=parse_vector_db_config(data.get("vector_db")),
            log_level=data.get("log_level", LOG_LEVEL_INFO),
            log_rotation=LogRotationConfig.from_dict(data.get("log_rotation") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "auto_watch_enabled": self.auto_watch_enabled,
            "respect_gitignore": self.respect_gitignore,
            "debounce_delay": self.debounce_delay,
            "write_stability_delay": self.write_stability_delay,
            "include_patterns": list(self.include_patterns),
            "exclude_patterns": list(self.exclude_patterns),
            "chunking": self.chunking.to_dict(),
            "embedding": self.embedding.to_dict(),
            "vector_db": vector_db_config_to_dict(self.vector_db),
            "log_level": self.log_level,
            "log_rotation": self.log_rotation.to_dict(),
        }

    def get_effective_log_level(self) -> str:
        """Get effective log level, considering environment variable overrides.

        Priority (highest to lowest):
        1. RAG_DEBUG=1 → DEBUG
        2. RAG_LOG_LEVEL environment variable
        3. Config file log_level setting
        4. Default: INFO
        """
        settings = get_runtime_settings()
        if settings.debug:
            return LOG_LEVEL_DEBUG

        env_level = settings.log_level.upper()
        if env_level in VALID_LOG_LEVELS:
            return env_level

        if self.log_level.upper() in VALID_LOG_LEVELS:
            return self.log_level.upper()

        return LOG_LEVEL_INFO


def get_config_path(project_root: Path) -> Path:
    """Path of the project config file."""
    return project_root / CONFIG_DIR / CONFIG_FILE


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        with open(config_file, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse config YAML: {e}", config_file=config_file
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config: {e}", config_file=config_file) from e

    if not isinstance(config_data, dict):
        raise ConfigurationError("Config file must contain a mapping", config_file=config_file)
    return config_data


def load_service_config(project_root: Path, strict: bool = False) -> RagServiceConfig:
    """Load service configuration from a project.

    The ``vector_db`` and ``embedding`` sections are always validated: a
    broken store or embedding config raises instead of silently running
    against the in-memory default. The same holds for a file that cannot be
    read or parsed. Other sections (chunking, delays, logging) fall back to
    their defaults with a warning unless ``strict`` is set.

    Args:
        project_root: Project root directory.
        strict: Also raise when a non-backend section is invalid.

    Returns:
        RagServiceConfig with settings (defaults if not configured).

    Raises:
        ConfigurationError: If the file is unreadable, the vector_db or
            embedding section is invalid, or (with ``strict``) any other
            section is invalid.
    """
    config_file = get_config_path(project_root)

    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using defaults")
        return RagServiceConfig()

    config_data = _read_config_file(config_file)

    try:
        vector_db = parse_vector_db_config(config_data.get("vector_db"))
        embedding = EmbeddingConfig.from_dict(config_data.get("embedding") or {})
    except ConfigurationError as e:
        e.details.setdefault("config_file", str(config_file))
        raise

    try:
        config = RagServiceConfig.from_dict(config_data)
    except ConfigurationError as e:
        if strict:
            raise
        logger.warning(f"Invalid config in {config_file}: {e}")
        logger.info("Using default settings for everything except vector_db and embedding")
        config = RagServiceConfig(embedding=embedding, vector_db=vector_db)

    logger.debug(
        f"Loaded config: vector_db={config.vector_db.provider}, "
        f"embedding={config.embedding.provider}"
    )
    return config


def save_service_config(project_root: Path, config: RagServiceConfig) -> Path:
    """Write service configuration to the project config file.

    Args:
        project_root: Project root directory.
        config: Configuration to save.

    Returns:
        Path of the written file.
    """
    config_file = get_config_path(project_root)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.debug(f"Saved config to {config_file}")
    return config_file
