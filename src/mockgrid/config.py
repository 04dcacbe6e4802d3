"""Configuration management for Mockgrid."""

import logging
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

StorageType = Literal["none", "memory", "sqlite", "filesystem"]


class StorageSettings(BaseModel):
    """Where message records and webhook configs are persisted.

    Attributes:
        type: Backend kind. "none" discards everything, "memory" keeps
            records for the lifetime of the process.
        path: SQLite database file or filesystem root directory.
    """

    type: StorageType = Field(
        default="none",
        description="Storage backend: none, memory, sqlite or filesystem",
    )
    path: str | None = Field(
        default=None,
        description="Path to the sqlite database or filesystem store directory",
    )

    @model_validator(mode="after")
    def _require_path_for_durable_backends(self) -> "StorageSettings":
        """Durable backends cannot run without a location."""
        if self.type in ("sqlite", "filesystem") and not self.path:
            raise ValueError(f"storage type '{self.type}' requires a path")
        return self


class WebhookSettings(BaseModel):
    """Outbound webhook delivery tuning.

    Attributes:
        timeout_seconds: Per-request HTTP timeout.
        max_attempts: Delivery attempts per subscriber before giving up.
        retry_delay_seconds: Initial backoff delay (doubles each attempt).
        max_concurrent: Maximum concurrent deliveries across subscribers.
        signature_header: Header carrying the HMAC-SHA256 signature.
    """

    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    max_concurrent: int = Field(default=10, ge=1, le=100)
    signature_header: str = Field(default="X-Twilio-Signature", min_length=1)


class Settings(BaseSettings):
    """Mockgrid configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the MOCKGRID_ prefix. Nested values use a double underscore:
        MOCKGRID_STORAGE__TYPE=sqlite
        MOCKGRID_STORAGE__PATH=./mockgrid.db
        MOCKGRID_WEBHOOKS__TIMEOUT_SECONDS=5
    """

    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    storage: StorageSettings = Field(
        default_factory=StorageSettings,
        description="Message and webhook persistence",
    )
    webhooks: WebhookSettings = Field(
        default_factory=WebhookSettings,
        description="Outbound webhook delivery",
    )

    model_config = {
        "env_prefix": "MOCKGRID_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def _warn_on_volatile_production_storage(self) -> "Settings":
        """Volatile storage in production loses every record on restart."""
        if self.env == "production" and self.storage.type in ("none", "memory"):
            logger.warning(
                "Storage type '%s' is not durable; messages are lost on restart",
                self.storage.type,
            )
        return self


# Global settings instance
settings = Settings()
