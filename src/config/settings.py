"""
Configuration Management for PAI

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but the core never
reads it directly. The orchestrator reads settings once at startup and passes
the values into stores and services, so every component stays testable with
explicit arguments.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Reconciling store behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="PAI_STORE_",
        extra="ignore"
    )

    background_sync_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Debounce delay before refreshing the remote snapshot after a mutation"
    )
    max_occurrences: int = Field(
        default=24,
        ge=1,
        le=24,
        description="Upper bound offered to forms for recurrence occurrences"
    )
    guest_user_id: str = Field(
        default="guest",
        min_length=1,
        description="Identity used to namespace local keys for guests"
    )


class ApiSettings(BaseSettings):
    """Remote record service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PAI_API_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:5001/api",
        description="Base URL of the remote record service"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout"
    )
    # Only list() is retried. Writes are never retried automatically.
    list_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for idempotent list requests on network failures"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return v.rstrip("/")


class LocalStorageSettings(BaseSettings):
    """Local key/value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PAI_LOCAL_",
        extra="ignore"
    )

    directory: Optional[Path] = Field(
        default=None,
        description="Directory for file-backed local storage (in-memory when unset)"
    )
    quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Capacity of local storage, matching the browser localStorage limit"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("store", "api", "local_storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
