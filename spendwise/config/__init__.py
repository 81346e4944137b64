"""Configuration package."""

from spendwise.config.settings import (
    AppSettings,
    CurrencySettings,
    RemoteSettings,
    SecuritySettings,
    SessionSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CurrencySettings",
    "RemoteSettings",
    "SecuritySettings",
    "SessionSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
