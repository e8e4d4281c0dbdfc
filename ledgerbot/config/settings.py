"""
Configuration Management for Sheets Ledger Bot

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Locale-specific presentation (currency symbol, timezone, date formats)
lives in LedgerSettings instead of being baked into formatting helpers.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ledgerbot.models.catalog import (
    DEFAULT_ACCOUNTS,
    DEFAULT_LOAN_NUMBER_OFFSETS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    REIMBURSEMENT_CATEGORIES,
)


class TelegramSettings(BaseSettings):
    """Telegram transport configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        extra="ignore"
    )

    bot_token: str = Field(
        ...,
        description="Bot token issued by BotFather"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Public webhook URL. Long polling is used when unset."
    )
    webhook_port: int = Field(
        default=8443,
        ge=1,
        le=65535,
        description="Local port the webhook listener binds to"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet holding ledger rows"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AuthSettings(BaseSettings):
    """
    Who may talk to the bot.

    Both variables are read without a prefix so existing deployments
    keep working: AUTHORIZED_USER_ID and AUTHORIZED_USER_IDS.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    authorized_user_id: Optional[str] = Field(
        default=None,
        description="Single Telegram user id allowed to use the bot"
    )
    authorized_user_ids: Optional[str] = Field(
        default=None,
        description="Comma-separated list of allowed Telegram user ids"
    )

    @property
    def allowed_ids(self) -> set[str]:
        ids = set()
        if self.authorized_user_id:
            ids.add(self.authorized_user_id.strip())
        if self.authorized_user_ids:
            ids.update(
                part.strip()
                for part in self.authorized_user_ids.split(",")
                if part.strip()
            )
        return ids


class LedgerSettings(BaseSettings):
    """Ledger conventions, catalog and presentation options."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        extra="ignore"
    )

    # Presentation
    currency_symbol: str = Field(
        default="₱",
        description="Symbol prefixed to formatted amounts"
    )
    timezone: str = Field(
        default="Asia/Manila",
        description="IANA timezone used for entry timestamps"
    )
    timestamp_format: str = Field(
        default="%m/%d/%Y, %I:%M:%S %p",
        description="strftime format of the Date cell for new entries"
    )
    display_date_format: str = Field(
        default="%m/%d/%Y",
        description="strftime format for dates shown in reports"
    )

    # Catalog
    accounts: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ACCOUNTS),
        description="Selectable accounts (JSON list in the environment)"
    )
    income_categories: list[str] = Field(
        default_factory=lambda: list(INCOME_CATEGORIES)
    )
    expense_categories: list[str] = Field(
        default_factory=lambda: list(EXPENSE_CATEGORIES)
    )
    reimbursement_categories: list[str] = Field(
        default_factory=lambda: list(REIMBURSEMENT_CATEGORIES)
    )

    # Loans
    loan_number_offsets: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_LOAN_NUMBER_OFFSETS),
        description="First loan number per account (JSON map)"
    )
    loan_proceeds_account: str = Field(
        default="Maribank",
        description="Account that receives loan proceeds from the clearing account"
    )

    # Listing windows
    selection_window: int = Field(
        default=10,
        ge=1,
        le=50,
        description="How many recent rows the delete/edit flows list"
    )
    recent_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many rows 'View Recent' shows"
    )

    # Storage
    storage_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound for a single ledger call"
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
    use_sheets_storage: bool = Field(
        default=True,
        description="Persist to Google Sheets (False keeps rows in memory)"
    )


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus {name}_error
    entries describing each failure. Used as the startup check.
    """
    results = {}
    settings = settings or get_settings()

    for name in ("telegram", "google_sheets", "auth", "ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("auth") and not settings.auth.allowed_ids:
        results["auth"] = False
        results["auth_error"] = "No authorized user ids configured"

    return results
