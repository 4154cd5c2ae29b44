"""Configuration package."""

from receiptbook.config.settings import (
    AppSettings,
    ExportSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExportSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
