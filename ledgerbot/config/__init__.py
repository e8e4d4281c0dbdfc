"""Configuration package."""

from ledgerbot.config.settings import (
    AppSettings,
    AuthSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    TelegramSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
    "validate_all_settings",
]
