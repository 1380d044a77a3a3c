"""
Configuration management for minidb.

Uses pydantic-settings for environment variable support. The store itself
never reads settings; callers turn them into a `StoreConfig`.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


SYNC_MODES: frozenset[str] = frozenset(["fsync", "fdatasync", "none"])
LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


class Settings(BaseSettings):
    """minidb configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="MINIDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(
        default=Path("/tmp/minidb"),
        description="Store directory used by the CLI",
    )
    sync_mode: str = Field(
        default="fsync",
        description="Durability after each append: fsync, fdatasync, none",
    )
    snapshot_compression: bool = Field(
        default=False,
        description="gzip the snapshot file",
    )
    log_level: str = Field(
        default="WARNING",
        description="Log level for the CLI",
    )

    @field_validator("sync_mode")
    @classmethod
    def validate_sync_mode(cls, v: str) -> str:
        """Reject unknown sync modes."""
        v = v.lower()
        if v not in SYNC_MODES:
            raise ValueError(
                f"sync_mode must be one of {sorted(SYNC_MODES)}, got {v!r}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(LOG_LEVELS)}, got {v!r}"
            )
        return v


@dataclass
class StoreConfig:
    """Explicit configuration handed to a `Store`."""
    sync_mode: str = "fsync"  # "fsync", "fdatasync", "none"
    compress_snapshot: bool = False

    def __post_init__(self) -> None:
        if self.sync_mode not in SYNC_MODES:
            raise ValueError(f"Unknown sync_mode: {self.sync_mode!r}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreConfig":
        return cls(
            sync_mode=settings.sync_mode,
            compress_snapshot=settings.snapshot_compression,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded from (in order of precedence):
    1. Environment variables (MINIDB_* prefix)
    2. .env file in the working directory
    3. Default values
    """
    settings = Settings()
    logger.debug(f"Loaded settings: data_dir={settings.data_dir}, sync_mode={settings.sync_mode}")
    return settings


def reset_settings() -> None:
    """Clear the cached settings, forcing reload on next get_settings() call."""
    get_settings.cache_clear()
