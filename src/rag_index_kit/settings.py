"""Runtime settings for rag-index-kit.

Pydantic Settings read overrides from ``RAG_``-prefixed environment
variables. These take priority over the project config file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """Environment overrides for logging.

    Can be overridden via environment variables with RAG_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="RAG_")

    debug: bool = Field(
        default=False,
        description="Force DEBUG logging regardless of configured level",
    )
    log_level: str = Field(
        default="",
        description="Log level override (DEBUG, INFO, WARNING, ERROR)",
    )


def get_runtime_settings() -> RuntimeSettings:
    """Read runtime settings from the current environment."""
    return RuntimeSettings()
