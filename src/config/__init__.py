"""Configuration package."""

from src.config.settings import (
    ApiSettings,
    AppSettings,
    LocalStorageSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "ApiSettings",
    "AppSettings",
    "LocalStorageSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
