"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from queuectl.constants import (
    CONFIG_KEYS,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_POLL_INTERVAL_SECONDS,
)
from queuectl.errors import InvalidInput


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///queuectl.db"
    database_echo: bool = False

    # Dispatcher Configuration
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    backoff_base: float = Field(default=DEFAULT_BACKOFF_BASE, ge=1)
    backoff_max_seconds: float | None = Field(default=None, gt=0)
    default_max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    job_timeout_seconds: float | None = Field(default=None, gt=0)
    worker_count: int = Field(default=1, ge=1)
    heartbeat_interval_seconds: float = Field(
        default=DEFAULT_HEARTBEAT_INTERVAL_SECONDS, gt=0
    )

    # Reaper Configuration
    reaper_interval_seconds: float = Field(default=30.0, gt=0)
    reaper_stale_after_seconds: float = Field(default=3600.0, gt=0)

    # API Configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "queuectl"

    @model_validator(mode="after")
    def _check_reaper_window(self) -> "Settings":
        # A claim refreshed by its heartbeat must never look stale
        if self.reaper_stale_after_seconds <= self.heartbeat_interval_seconds:
            raise ValueError(
                "reaper_stale_after_seconds must be greater than heartbeat_interval_seconds"
            )
        return self


class RuntimeConfig(BaseModel):
    """
    Tunables that can be overridden at runtime with `queuectl config set`.

    Values come from Settings, overlaid with the overrides persisted in the
    config table. Overrides are stored as strings and coerced here.
    """

    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    backoff_base: float = Field(default=DEFAULT_BACKOFF_BASE, ge=1)
    backoff_max_seconds: float | None = Field(default=None, gt=0)
    default_max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    job_timeout_seconds: float | None = Field(default=None, gt=0)

    @classmethod
    def resolve(
        cls,
        settings: Settings,
        overrides: Mapping[str, str] | None = None,
    ) -> "RuntimeConfig":
        """
        Build the effective runtime configuration.

        Args:
            settings: Environment-sourced settings.
            overrides: Persisted key/value overrides.

        Returns:
            The validated RuntimeConfig.

        Raises:
            InvalidInput: If an override is unknown or fails validation.
        """
        values: dict[str, Any] = {key: getattr(settings, key) for key in CONFIG_KEYS}
        for key, raw in (overrides or {}).items():
            if key not in CONFIG_KEYS:
                raise InvalidInput(
                    f"Unknown config key {key!r}. Allowed keys: {', '.join(CONFIG_KEYS)}"
                )
            values[key] = _parse_override(raw)

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise InvalidInput(str(e)) from e


def _parse_override(raw: str) -> str | None:
    # "none" clears an optional tunable such as the backoff cap
    if raw.strip().lower() in {"", "none", "null"}:
        return None
    return raw.strip()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
