"""Configuration package."""

from zzp_assistant.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    KnowledgeSettings,
    Settings,
    get_settings,
    optional_google_sheets,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "KnowledgeSettings",
    "Settings",
    "get_settings",
    "optional_google_sheets",
    "validate_all_settings",
]
