# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
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
        extra="ignore",
    )

    # === Persistent store ===
    store_backend: str = "json"
    store_root: Path = Path("~/.ojlink/store")
    store_ttl_hours: float = 24.0

    # === Skip detector ===
    skip_tolerance_threshold: float = 0.90
    skip_minimum_sample: int = 3
    skip_max_error_ratio: float = 0.2

    # === Reconciler ===
    verification_local_ttl_seconds: float = 300.0
    verification_audit_rate: float = 0.05
    verification_check_timeout_seconds: float | None = 30.0

    # === Batch classification ===
    seconds_saved_per_skip: int = 5
    progress_every: int = 5

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("store_backend")
    @classmethod
    def normalize_backend(cls, v: str) -> str:  # noqa: N805
        return v.strip().lower()

    @field_validator("skip_minimum_sample", "progress_every")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not 0.5 <= self.skip_tolerance_threshold <= 1.0:
            errors.append("SKIP_TOLERANCE_THRESHOLD must be within [0.5, 1.0]")

        if not 0.0 <= self.skip_max_error_ratio <= 1.0:
            errors.append("SKIP_MAX_ERROR_RATIO must be within [0, 1]")

        if not 0.0 <= self.verification_audit_rate <= 1.0:
            errors.append("VERIFICATION_AUDIT_RATE must be within [0, 1]")

        if self.store_ttl_hours <= 0:
            errors.append("STORE_TTL_HOURS must be > 0")

        if self.verification_local_ttl_seconds < 0:
            errors.append("VERIFICATION_LOCAL_TTL_SECONDS must be >= 0")

        if (
            self.verification_check_timeout_seconds is not None
            and self.verification_check_timeout_seconds <= 0
        ):
            errors.append("VERIFICATION_CHECK_TIMEOUT_SECONDS must be > 0 when set")

        if self.seconds_saved_per_skip < 0:
            errors.append("SECONDS_SAVED_PER_SKIP must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
