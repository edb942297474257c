# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Deployment-level defaults. Per-project choices (book structure, formats,
freeze policy) live in the project's ``_book.yml``; see config/project.py.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BOOKPRESS_",
        extra="ignore",
    )

    # === Freeze ===
    freeze_policy: Literal["never", "always", "auto"] = "auto"
    freeze_dir: str = "_freeze"
    fingerprint_exclude_options: str = (
        "quiet,verbose,log-level,keep-md,keep-intermediates,freeze,output-file"
    )

    # === Project layout ===
    book_config_file: str = "_book.yml"
    output_dir: str = "_book"

    # === Build ===
    max_concurrency: int = 4
    keep_intermediates: bool = False

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        errors: list[str] = []

        if self.freeze_dir == self.output_dir:
            errors.append("FREEZE_DIR and OUTPUT_DIR must differ")
        for name in ("freeze_dir", "output_dir"):
            value = getattr(self, name)
            if not value or Path(value).is_absolute() or ".." in Path(value).parts:
                errors.append(f"{name.upper()} must be a relative directory name")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def fingerprint_exclude_options_list(self) -> list[str]:
        """Parse comma-separated excluded option names."""
        return [
            o.strip() for o in self.fingerprint_exclude_options.split(",") if o.strip()
        ]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
