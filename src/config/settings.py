# src/config/settings.py - v2
"""Typed configuration loaded from .env / environment via pydantic-settings.

All variables use the ``MDC_`` prefix, e.g. ``MDC_LOG_LEVEL=DEBUG``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from structured_mdc.logging.handlers import parse_size
from structured_mdc.logging.propagation import OverwriteStrategy


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Logging and MDC propagation settings."""

    model_config = SettingsConfigDict(
        env_prefix="MDC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # === MDC rendering ===
    include_mdc_keys: str = ""
    exclude_mdc_keys: str = ""
    mdc_field_name: str = ""

    # === Propagation ===
    overwrite_strategy: OverwriteStrategy = OverwriteStrategy.PREVENT_OVERWRITE

    # --- Validators ---

    @field_validator("log_rotation")
    @classmethod
    def validate_log_rotation(cls, v: str) -> str:
        parse_size(v)
        return v

    @field_validator("log_retention")
    @classmethod
    def validate_log_retention(cls, v: int) -> int:
        if v < 0:
            raise ValueError("log_retention must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        overlap = set(self.include_mdc_keys_list) & set(self.exclude_mdc_keys_list)
        if overlap:
            raise ConfigurationError(
                "MDC keys both included and excluded: " + ", ".join(sorted(overlap))
            )
        return self

    # --- Helpers ---

    @property
    def include_mdc_keys_list(self) -> list[str]:
        """Parse comma-separated MDC keys to include."""
        return [k.strip() for k in self.include_mdc_keys.split(",") if k.strip()]

    @property
    def exclude_mdc_keys_list(self) -> list[str]:
        """Parse comma-separated MDC keys to exclude."""
        return [k.strip() for k in self.exclude_mdc_keys.split(",") if k.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
