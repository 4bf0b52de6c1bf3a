# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Engine-wide defaults applied to agents whose AgentConfig leaves them unset,
cache plugin defaults, and logging options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENTENGINE_",
        extra="ignore",
    )

    # === Execution defaults ===
    default_max_retries: int = 2
    default_backoff_ms: int = 1000
    default_max_execution_time_ms: int | None = None
    default_cancel_on_timeout: bool = True

    # === Cache plugin ===
    cache_enabled: bool = False
    cache_default_ttl_ms: int = 30_000
    cache_max_entries: int = 1000
    cache_cleanup_interval_ms: int = 60_000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("default_max_retries", "default_backoff_ms", "cache_default_ttl_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_max_entries < 1:
            errors.append("CACHE_MAX_ENTRIES must be >= 1")

        if self.cache_cleanup_interval_ms <= 0:
            errors.append("CACHE_CLEANUP_INTERVAL_MS must be > 0")

        if (
            self.default_max_execution_time_ms is not None
            and self.default_max_execution_time_ms <= 0
        ):
            errors.append("DEFAULT_MAX_EXECUTION_TIME_MS must be > 0 when set")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
