"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here, one settings class per external
dependency, so it is easy to see what the service talks to and every
section can be validated at startup.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        default="credentials.json",
        description="Service account credentials JSON for the master users sheet"
    )
    users_spreadsheet_id: str = Field(
        default="",
        description="ID of the master spreadsheet holding the Users sheet"
    )

    # Sheet names within each spreadsheet
    debts_sheet_name: str = Field(
        default="Debts",
        description="Name of the sheet for debts"
    )
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses and payments"
    )
    credit_history_sheet_name: str = Field(
        default="CreditHistory",
        description="Name of the sheet for statement records"
    )
    users_sheet_name: str = Field(
        default="Users",
        description="Name of the tenant directory sheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The tenant directory will be unavailable until it exists."
            )
        return v


class GoogleOAuthSettings(BaseSettings):
    """Google OAuth client used to refresh tenant access tokens."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_",
        extra="ignore"
    )

    client_id: str = Field(
        default="",
        description="OAuth client ID"
    )
    client_secret: str = Field(
        default="",
        description="OAuth client secret"
    )
    token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Token endpoint used for refresh_token grants"
    )
    sheets_api_base: str = Field(
        default="https://sheets.googleapis.com/v4/spreadsheets",
        description="Base URL used to probe spreadsheet access"
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for identity provider calls"
    )


class SchedulerSettings(BaseSettings):
    """Nightly accrual batch configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Start the accrual scheduler with the app"
    )
    cron_schedule: str = Field(
        default="0 2 * * *",
        description="Crontab expression for the accrual batch"
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone for the cron trigger and the batch's notion of today"
    )

    @field_validator('cron_schedule')
    @classmethod
    def validate_cron_schedule(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError("cron_schedule must have 5 fields")
        return v


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
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )

    # Business limits
    max_installment_months: int = Field(
        default=120,
        ge=1,
        le=600,
        description="Longest installment plan the API will build"
    )
    default_due_day_fallback: int = Field(
        default=25,
        ge=1,
        le=31,
        description="Day of the statement month used as due date when a debt has no due day"
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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def google_oauth(self) -> GoogleOAuthSettings:
        return GoogleOAuthSettings()

    @property
    def scheduler(self) -> SchedulerSettings:
        return SchedulerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {section: is_valid}, plus {section}_error entries
    for the sections that failed. Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for section in ("google_sheets", "google_oauth", "scheduler", "app"):
        try:
            getattr(settings, section)
            results[section] = True
        except ValueError as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
