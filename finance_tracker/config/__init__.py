"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    GoogleOAuthSettings,
    GoogleSheetsSettings,
    SchedulerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleOAuthSettings",
    "GoogleSheetsSettings",
    "SchedulerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
