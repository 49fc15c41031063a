"""Custom exceptions for rag-index-kit.

All exceptions inherit from RagIndexError so callers can catch every
indexing-related failure with a single except clause.

Exception hierarchy:
    RagIndexError (base)
    ├── ConfigurationError
    │   └── ValidationError
    ├── IndexingError
    ├── EmbeddingError (defined in embeddings.base)
    ├── IndexManagerError
    │   └── NotInitializedError
    └── ServiceError
"""

from pathlib import Path
from typing import Any


class RagIndexError(Exception):
    """Base exception for all rag-index-kit errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize error.

        Args:
            message: Error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(RagIndexError):
    """Raised when configuration is invalid or cannot be loaded.

    Examples:
        - Invalid YAML syntax in config file
        - Unknown vector database or embedding provider
        - A backend that needs an embedding provider created without one
    """

    def __init__(
        self,
        message: str,
        config_file: Path | None = None,
        key: str | None = None,
    ):
        """Initialize configuration error.

        Args:
            message: Error description.
            config_file: Path to the problematic config file.
            key: The configuration key that caused the error.
        """
        details = {}
        if config_file:
            details["config_file"] = str(config_file)
        if key:
            details["key"] = key
        super().__init__(message, details)
        self.config_file = config_file
        self.key = key


class ValidationError(ConfigurationError):
    """Raised when configuration values fail validation."""

    def __init__(
        self,
        message: str,
        field: str,
        value: Any = None,
        expected: str | None = None,
    ):
        """Initialize validation error.

        Args:
            message: Error description.
            field: The field that failed validation.
            value: The invalid value (truncated if too long).
            expected: Description of expected value format.
        """
        super().__init__(message)
        self.details["field"] = field
        if value is not None:
            value_str = str(value)
            self.details["value"] = value_str[:100] + "..." if len(value_str) > 100 else value_str
        if expected:
            self.details["expected"] = expected
        self.field = field
        self.value = value
        self.expected = expected


# =============================================================================
# Indexing Errors
# =============================================================================


class IndexingError(RagIndexError):
    """Raised when indexing a file or a batch fails."""

    def __init__(
        self,
        message: str,
        file_path: Path | str | None = None,
        batch: int | None = None,
    ):
        """Initialize indexing error.

        Args:
            message: Error description.
            file_path: The file being processed when the error occurred.
            batch: Embedding batch number, when the error is batch-scoped.
        """
        details: dict[str, Any] = {}
        if file_path:
            details["file_path"] = str(file_path)
        if batch is not None:
            details["batch"] = batch
        super().__init__(message, details)
        self.file_path = file_path
        self.batch = batch


# =============================================================================
# Index Manager Errors
# =============================================================================


class IndexManagerError(RagIndexError):
    """Raised when a vector store operation fails.

    The message always names the operation so callers can tell upsert,
    query and delete failures apart without knowing backend exception types.

    Attributes:
        operation: Operation label, e.g. ``"Upsert"`` or ``"delete_where"``.
        cause: Underlying backend exception.
    """

    def __init__(
        self,
        operation: str,
        cause: Exception | str,
        provider: str | None = None,
    ):
        """Initialize index manager error.

        Args:
            operation: Operation label used as the message prefix.
            cause: Underlying exception or a plain reason string.
            provider: Backend provider name.
        """
        reason = str(cause)
        details = {"provider": provider} if provider else None
        super().__init__(f"{operation} failed: {reason}", details)
        self.operation = operation
        self.cause = cause if isinstance(cause, Exception) else None
        self.provider = provider


class NotInitializedError(IndexManagerError):
    """Raised when an IndexManager is used before it is ready."""

    def __init__(self, message: str = "IndexManager not initialized."):
        """Initialize not-initialized error.

        Args:
            message: Error description.
        """
        RagIndexError.__init__(self, message)
        self.operation = "initialization"
        self.cause = None
        self.provider = None


# =============================================================================
# Service Errors
# =============================================================================


class ServiceError(RagIndexError):
    """Raised when the sync service cannot start or is misused.

    Examples:
        - Operation invoked before initialize()
        - Baseline file-state fetch failed during reconciliation
    """

    def __init__(
        self,
        message: str,
        state: str | None = None,
        cause: Exception | None = None,
    ):
        """Initialize service error.

        Args:
            message: Error description.
            state: Service state when the error occurred.
            cause: Underlying exception.
        """
        details = {"state": state} if state else None
        super().__init__(message, details)
        self.state = state
        self.cause = cause
