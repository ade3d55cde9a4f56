"""Configuration settings for mkgo.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the MKGO_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="MKGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path = Field(
        default=Path(".mkgo-cache"),
        description="Root directory of the content-addressed build cache",
    )
    output_dir: Path = Field(
        default=Path("dist"),
        description="Default output directory for binaries",
    )
    metrics_dir: Path = Field(
        default=Path(".build-metrics"),
        description="Directory for recorded build metrics",
    )

    # Toolchain
    toolchain: str = Field(
        default="go",
        description="Go toolchain executable",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    default_parallel: int = Field(
        default=2,
        ge=1,
        le=64,
        description="Default number of parallel builds",
    )

    # Timeouts (in seconds)
    default_timeout: int = Field(
        default=300,
        ge=1,
        description="Default per-target build timeout",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
