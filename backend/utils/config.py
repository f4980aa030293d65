"""
AssetWatch Configuration Module.

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
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


def _split_csv(v: str | list[str]) -> list[str]:
    """Parse a comma-separated string or list into a list of extensions."""
    if isinstance(v, str):
        v = v.split(",")
    return [item.strip().lstrip(".").lower() for item in v if item.strip()]


class PathSettings(BaseSettings):
    """Source and destination tree locations."""

    model_config = SettingsConfigDict(env_prefix="PATHS_")

    source: Path = Field(default=Path("source"), description="Source tree root")
    dest: Path = Field(default=Path("dest"), description="Destination tree root")


class WatchSettings(BaseSettings):
    """Watch session configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WATCH_")

    enabled: bool = Field(default=True)
    source_glob: str = Field(default="", description="Default filter for the source session")
    dest_glob: str = Field(default="", description="Default filter for the destination session")
    recursive: bool = Field(default=True)

    debounce_ms: int = Field(default=300, ge=0, le=5000)
    ready_delay_ms: int = Field(default=700, ge=0, le=10000)

    include_prefix: str = Field(default="_", description="Base name prefix of include files")
    include_file_types: Annotated[list[str], NoDecode] = Field(
        default=["ejs", "jade", "md", "pug", "sass", "scss", "styl"],
        description="Extensions whose files can embed includes",
    )

    @field_validator("include_file_types", mode="before")
    @classmethod
    def parse_include_file_types(cls, v: str | list[str]) -> list[str]:
        """Parse include file types from comma-separated string or list."""
        return _split_csv(v)


class LiveReloadSettings(BaseSettings):
    """Live-reload notification channel settings."""

    model_config = SettingsConfigDict(env_prefix="LIVERELOAD_")

    enabled: bool = Field(default=False)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=35729, ge=1, le=65535)
    flush_delay_ms: int = Field(default=300, ge=0, le=5000)
    push_timeout: float = Field(default=5.0, ge=0.1)

    file_types: Annotated[list[str], NoDecode] = Field(
        default=["css", "gif", "htm", "html", "jpeg", "jpg", "js", "png", "svg", "webp"],
        description="Destination extensions that trigger a browser reload",
    )

    @field_validator("file_types", mode="before")
    @classmethod
    def parse_file_types(cls, v: str | list[str]) -> list[str]:
        """Parse live-reload file types from comma-separated string or list."""
        return _split_csv(v)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="AssetWatch")
    app_version: str = Field(default="0.1.0")

    debug: bool = Field(default=False)
    # Interactive (command line) mode; embedding callers leave this off
    cli: bool = Field(default=False)

    # Sub-settings
    paths: PathSettings = Field(default_factory=PathSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    livereload: LiveReloadSettings = Field(default_factory=LiveReloadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for the command line entry point.
    Library callers should build and pass their own Settings.
    """
    return Settings()
