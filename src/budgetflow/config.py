"""Centralized configuration management for BudgetFlow.

This module provides a Pydantic Settings-based configuration system that
consolidates all application settings with environment variable integration,
type validation, and clear error handling.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROFILE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class DatabaseConfig(BaseModel):
    """Database configuration settings."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default=Path("data/duckdb/budgetflow.duckdb"),
        description="Path to DuckDB database file",
    )
    create_dirs: bool = Field(
        default=True, description="Automatically create database directories"
    )

    @field_validator("path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database path has correct extension."""
        if not str(v).endswith((".db", ".duckdb")):
            raise ValueError("Database path must end with .db or .duckdb")
        return v


class ProviderConfig(BaseModel):
    """GoCardless Bank Account Data API settings."""

    model_config = ConfigDict(frozen=True)

    secret_id: str = Field(default="", description="GoCardless secret ID")
    secret_key: str = Field(default="", description="GoCardless secret key")
    base_url: str = Field(
        default="https://bankaccountdata.gocardless.com",
        description="API base URL",
    )
    timeout_seconds: float = Field(
        default=30.0, gt=0, le=300, description="Timeout for every provider call"
    )
    redirect_url: str = Field(
        default="http://localhost:8080/callback",
        description="Where the bank sends the user after authorization",
    )
    country: str = Field(
        default="GB", min_length=2, max_length=2, description="Default country"
    )
    user_language: str = Field(default="EN", description="Bank consent UI language")


class SyncConfig(BaseModel):
    """Transaction synchronization settings."""

    model_config = ConfigDict(frozen=True)

    window_days: int = Field(
        default=30, ge=1, le=730, description="Rolling sync window in days"
    )
    batch_size: int = Field(
        default=500, ge=1, le=10_000, description="Rows per upsert batch"
    )
    refresh_interval_seconds: int = Field(
        default=3600, ge=60, description="Auto-refresh interval in seconds"
    )
    save_raw_data: bool = Field(
        default=False, description="Archive each fetched batch as Parquet"
    )
    raw_data_path: Path = Field(
        default=Path("data/raw/gocardless"), description="Raw data archive"
    )


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=False, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/budgetflow.log"), description="Path to log file"
    )
    max_file_size_mb: int = Field(
        default=50, ge=1, le=1000, description="Maximum log file size in MB"
    )
    backup_count: int = Field(
        default=5, ge=1, le=50, description="Number of log file backups to keep"
    )


class BudgetFlowSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the BUDGETFLOW_ prefix.
    For nested configs, use double underscores: BUDGETFLOW_SYNC__WINDOW_DAYS

    Profile Support:
    - Loads from .env.{profile} files (e.g., .env.alice, .env.household)
    - Falls back to .env
    - The profile name doubles as the user identity that owns account links
      and transactions in the store
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    profile: str = Field(
        default="default",
        description="User profile name (e.g., alice, bob, household)",
    )

    @field_validator("profile")
    @classmethod
    def validate_profile_name(cls, v: str) -> str:
        """Ensure profile name is safe for use as a filename."""
        if not v:
            raise ValueError("Profile name cannot be empty")
        if not _PROFILE_PATTERN.match(v):
            raise ValueError(
                "Profile name must contain only alphanumeric characters, "
                "dashes, and underscores"
            )
        return v

    def __init__(self, **kwargs: Any):
        """Initialize settings with plain GoCardless environment overrides.

        Args:
            **kwargs: Additional configuration overrides
        """
        if "provider" not in kwargs:
            secret_id = os.getenv("GOCARDLESS_SECRET_ID")
            secret_key = os.getenv("GOCARDLESS_SECRET_KEY")
            if secret_id and secret_key:
                kwargs["provider"] = ProviderConfig(
                    secret_id=secret_id, secret_key=secret_key
                )

        if "database" not in kwargs:
            duckdb_path = os.getenv("DUCKDB_PATH")
            if duckdb_path:
                kwargs["database"] = DatabaseConfig(path=Path(duckdb_path))

        super().__init__(**kwargs)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize how settings are loaded to support profile-based env files."""
        init_dict = init_settings.init_kwargs if init_settings else {}
        profile = init_dict.get("profile", "default")  # type: ignore[reportUnknownMemberType]

        profile_env_file = Path(f".env.{profile}")
        env_file = str(profile_env_file) if profile_env_file.exists() else ".env"

        from pydantic_settings import DotEnvSettingsSource

        custom_dotenv = DotEnvSettingsSource(
            settings_cls,
            env_file=env_file,
            env_file_encoding="utf-8",
        )

        return (
            init_settings,
            env_settings,
            custom_dotenv,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",  # Default, but overridden by settings_customise_sources
        env_file_encoding="utf-8",
        env_prefix="BUDGETFLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    def create_directories(self) -> None:
        """Create necessary directories for the application."""
        directories = [self.database.path.parent]
        if self.sync.save_raw_data:
            directories.append(self.sync.raw_data_path)
        if self.logging.log_to_file:
            directories.append(self.logging.log_file_path.parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def validate_required_credentials(self) -> None:
        """Validate that provider credentials are present."""
        errors: list[str] = []

        if not self.provider.secret_id:
            errors.append("GOCARDLESS_SECRET_ID is required")
        if not self.provider.secret_key:
            errors.append("GOCARDLESS_SECRET_KEY is required")

        if errors:
            raise ValueError(f"Missing required configuration: {', '.join(errors)}")


# Global settings instances - lazy loaded per profile
_settings_cache: dict[str, BudgetFlowSettings] = {}
_current_profile: str = "default"


def get_settings(profile: str | None = None) -> BudgetFlowSettings:
    """Get the settings instance for the specified user profile.

    Settings are loaded once per profile and cached. Provider credentials are
    not required here; they are checked when a provider client is built.

    Args:
        profile: User profile name (e.g., 'alice', 'bob'). Defaults to current profile.

    Returns:
        BudgetFlowSettings: The configuration instance for the specified profile

    Raises:
        ValueError: If configuration is invalid
    """
    if profile is None:
        profile = _current_profile

    if profile in _settings_cache:
        return _settings_cache[profile]

    load_dotenv()
    try:
        settings = BudgetFlowSettings(profile=profile)
    except Exception as e:
        raise ValueError(f"Configuration error for profile '{profile}': {e}") from e

    if settings.database.create_dirs:
        settings.create_directories()

    _settings_cache[profile] = settings
    return settings


def set_current_profile(profile: str) -> None:
    """Set the current active user profile.

    Args:
        profile: User profile name (e.g., 'alice', 'bob', 'household')

    Raises:
        ValueError: If profile name contains invalid characters
    """
    global _current_profile

    if not profile:
        raise ValueError("Profile name cannot be empty")

    if not _PROFILE_PATTERN.match(profile):
        raise ValueError(
            f"Invalid profile: {profile}. "
            "Profile name must contain only alphanumeric characters, dashes, and underscores"
        )

    _current_profile = profile


def get_current_profile() -> str:
    """Get the current active user profile.

    Returns:
        str: The current profile name (e.g., 'alice', 'bob', 'default')
    """
    return _current_profile


def reload_settings(profile: str | None = None) -> BudgetFlowSettings:
    """Reload settings from environment variables.

    Args:
        profile: Profile to reload. If None, reloads current profile.

    Returns:
        BudgetFlowSettings: The reloaded configuration instance
    """
    if profile is None:
        profile = _current_profile

    _settings_cache.pop(profile, None)
    return get_settings(profile)


def clear_settings_cache() -> None:
    """Drop every cached settings instance."""
    _settings_cache.clear()


def get_database_path() -> Path:
    """Get the configured database path for the current profile.

    Returns:
        Path: The database path
    """
    return get_settings().database.path


def get_sync_config() -> SyncConfig:
    """Get the sync configuration for the current profile.

    Returns:
        SyncConfig: The sync configuration
    """
    return get_settings().sync
