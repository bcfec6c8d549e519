"""Configuration settings for gt_installer.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WORKSPACE = "glamoroustoolkit"

DEFAULT_SEED_URL = (
    "https://dl.feenk.com/pharo/"
    "Pharo12.0-SNAPSHOT.build.1596.sha.e35513ca60.arch.64bit.zip"
)


def _default_workspace() -> Path:
    """Return the default workspace directory."""
    return Path.cwd() / DEFAULT_WORKSPACE


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the GT_INSTALLER_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="GT_INSTALLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    workspace: Path = Field(
        default_factory=_default_workspace,
        description="Workspace directory holding the image and the state file",
    )

    # Operational modes
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Concurrency
    max_concurrent_downloads: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum concurrent archive downloads",
    )
    max_concurrent_unpacks: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum concurrent archive extractions",
    )

    # Timeouts (in seconds)
    head_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout for metadata probes before a download",
    )
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for archive downloads",
    )

    # Release sources
    default_seed_url: str = Field(
        default=DEFAULT_SEED_URL,
        description="Seed image archive used for new workspaces",
    )
    github_api_base: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API",
    )
    github_token: str | None = Field(
        default=None,
        description="Optional GitHub token for release lookups",
    )
    vm_repository_owner: str = Field(default="feenkcom")
    vm_repository_name: str = Field(default="gtoolkit-vm")
    image_repository_owner: str = Field(default="feenkcom")
    image_repository_name: str = Field(default="gtoolkit")


def get_settings() -> Settings:
    """Get the application settings singleton.

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
    return settings.model_dump_json(indent=2, exclude={"github_token"})


__all__ = [
    "DEFAULT_SEED_URL",
    "DEFAULT_WORKSPACE",
    "Settings",
    "get_settings",
    "print_settings_json",
]
