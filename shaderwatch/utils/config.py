"""
ShaderWatch Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
load_dotenv()


DEFAULT_COMPILER_COMMAND = [
    "cargo",
    "gpu",
    "build",
    "--shader-crate",
    "{crate}",
    "--target",
    "{target}",
    "--output-dir",
    "{output_dir}",
]


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    return v


class CompilerSettings(BaseSettings):
    """Shader toolchain settings."""

    model_config = SettingsConfigDict(env_prefix="COMPILER_")

    command: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_COMPILER_COMMAND),
        description="Build command template; {crate}, {target} and {output_dir} are substituted",
    )
    target: str = Field(default="spirv-unknown-vulkan1.2", description="rust-gpu compile target")
    release: bool = Field(default=True)
    output_root: Path | None = Field(
        default=None,
        description="Root of the artifact tree, defaults to <crate>/target/spirv-builder",
    )

    @field_validator("command", mode="before")
    @classmethod
    def parse_command(cls, v: str | list[str]) -> list[str]:
        """Parse the command template from comma-separated string or list."""
        return _split_csv(v)


class WatcherSettings(BaseSettings):
    """File watcher configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    debounce_delay_ms: int = Field(default=300, ge=50, le=5000)
    recursive: bool = Field(default=True)
    health_check_interval_s: float = Field(default=1.0, gt=0.0, le=60.0)

    ignore_patterns: Annotated[list[str], NoDecode] = Field(
        default=[
            "target",
            ".git",
            ".idea",
            ".vscode",
            "*.swp",
            "*.swx",
            "*~",
            ".#*",
            "4913",
        ],
        description="Glob patterns matched against each path component",
    )

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def parse_ignore_patterns(cls, v: str | list[str]) -> list[str]:
        """Parse ignore patterns from comma-separated string or list."""
        return _split_csv(v)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"
    file_path: Path | None = Field(default=None)


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="ShaderWatch")
    app_version: str = Field(default="0.1.0")

    # Sub-settings
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
