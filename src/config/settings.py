# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for executables, batching, staging, pressure
monitoring and logging. Every field can be set through a PODBATCH_*
environment variable (e.g. PODBATCH_CHUNK_SIZE=100); CLI flags are
applied on top as overrides.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# zstd max block size (128 KiB); reads of this size avoid fragmenting blocks.
DEFAULT_MONITOR_BUFFER_SIZE = 128 * 1024


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PODBATCH_",
        extra="ignore",
    )

    # === Discovery ===
    source_extension: str = ".pod5"

    # === Batching ===
    chunk_size: int = 50

    # === Staging ===
    staging_dir: Path = Path("tmpdir")
    staging_naming: Literal["basename", "hashed"] = "basename"

    # === Basecaller ===
    basecaller_model: str = "hac"
    basecaller_extra_args: str = ""

    # === Compressor ===
    compressor_path: str = "zstd"
    compressor_args: str = ""

    # === Pressure monitoring ===
    monitor_pressure: bool = False
    monitor_buffer_size: int = DEFAULT_MONITOR_BUFFER_SIZE
    report_path: Path = Path("chan_stats.csv")

    # === Pipeline ===
    batch_timeout_seconds: float | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("chunk_size must be >= 1")
        return v

    @field_validator("monitor_buffer_size")
    @classmethod
    def validate_buffer_size(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("monitor_buffer_size must be >= 1")
        return v

    @field_validator("source_extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:  # noqa: N805
        """Accept 'pod5' as well as '.pod5'."""
        v = v.strip()
        if not v:
            raise ValueError("source_extension must not be empty")
        return v if v.startswith(".") else f".{v}"

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.batch_timeout_seconds is not None and self.batch_timeout_seconds <= 0:
            errors.append("BATCH_TIMEOUT_SECONDS must be > 0 when set")

        if not self.compressor_path.strip():
            errors.append("COMPRESSOR_PATH must not be empty")

        if self.report_path.resolve() == self.staging_dir.resolve():
            errors.append("REPORT_PATH must differ from STAGING_DIR")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def basecaller_extra_args_list(self) -> list[str]:
        """Split extra basecaller arguments with shell quoting rules."""
        return shlex.split(self.basecaller_extra_args)

    @property
    def compressor_args_list(self) -> list[str]:
        """Split compressor arguments with shell quoting rules."""
        return shlex.split(self.compressor_args)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (CLI flags, tests).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
