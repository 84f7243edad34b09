"""
Configuration Management for moneyfx

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Services receive their settings object in the constructor and only read
the environment themselves when none is passed, so tests can build
isolated instances.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconciliationFrequency(str, Enum):
    """How often account balances are revalued."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


# Currencies the daily fetcher asks every provider for
DEFAULT_TARGET_CURRENCIES = (
    "USD,EUR,GBP,JPY,INR,CAD,AUD,CHF,CNY,SGD,HKD,NZD,KRW,MXN,BRL,RUB,ZAR,TRY,"
    "AED,SAR,THB,MYR,IDR,PHP,VND,BDT,PKR,LKR,NPR,SEK,NOK,DKK,PLN,KWD,BHD"
)


class RateFetcherSettings(BaseSettings):
    """Upstream exchange-rate provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FX_RATES_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Base currency all providers quote against"
    )
    target_currencies: str = Field(
        default=DEFAULT_TARGET_CURRENCIES,
        description="Comma-separated list of currencies to fetch each day"
    )

    # Provider endpoints (ascending priority)
    exchangerate_host_url: str = Field(
        default="https://api.exchangerate.host/latest",
        description="exchangerate.host latest-rates endpoint"
    )
    exchangerate_host_api_key: Optional[str] = Field(
        default=None,
        description="exchangerate.host access key"
    )
    fixer_url: str = Field(
        default="https://data.fixer.io/api/latest",
        description="Fixer.io latest-rates endpoint"
    )
    fixer_api_key: Optional[str] = Field(
        default=None,
        description="Fixer.io access key (provider skipped when unset)"
    )
    exchangerate_api_url: str = Field(
        default="https://api.exchangerate-api.com/v4/latest/USD",
        description="ExchangeRate-API latest-rates endpoint"
    )

    # Network behaviour
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Hard timeout for one provider call"
    )
    retry_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts per provider before falling through to the next one"
    )
    retry_wait_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Initial exponential backoff between attempts"
    )
    refresh_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="How often the background refresh checks for today's rates"
    )

    @field_validator("base_currency")
    @classmethod
    def normalize_base_currency(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def target_currency_list(self) -> list[str]:
        """Get target currencies as a list."""
        return [
            code.strip().upper()
            for code in self.target_currencies.split(",")
            if code.strip()
        ]


class ConversionSettings(BaseSettings):
    """Conversion engine defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FX_CONVERSION_",
        extra="ignore"
    )

    default_fee_percentage: Decimal = Field(
        default=Decimal("0.0025"),
        ge=0,
        lt=1,
        description="Conversion fee as a fraction of the entered amount (0.0025 = 0.25%)"
    )
    high_fee_warning_ratio: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Warn on transfers whose estimated fee exceeds this fraction of the amount"
    )


class ReconciliationSettings(BaseSettings):
    """FX reconciliation behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="FX_RECONCILIATION_",
        extra="ignore"
    )

    auto_reconcile: bool = Field(
        default=True,
        description="Run reconciliation on the background schedule"
    )
    reconciliation_frequency: ReconciliationFrequency = Field(
        default=ReconciliationFrequency.DAILY,
        description="Minimum time between reconciliations of one account"
    )
    threshold_percentage: Decimal = Field(
        default=Decimal("0.1"),
        ge=0,
        description="Minimum rate move (percent) that triggers a new reconciliation"
    )
    freeze_periods: bool = Field(
        default=False,
        description="Refuse to revalue accounting periods that have been frozen"
    )
    notify_on_significant_changes: bool = Field(
        default=True,
        description="Surface large gain/loss swings to the notification layer"
    )
    significant_change_threshold: Decimal = Field(
        default=Decimal("5.0"),
        ge=0,
        description="Gain/loss percentage considered significant"
    )
    run_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="How often the background reconciliation tick runs"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    rates_sheet_name: str = Field(
        default="DailyExchangeRates",
        description="Name of the sheet for daily exchange rates"
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

    primary_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Default reporting currency when the caller does not pass one"
    )

    @field_validator("primary_currency")
    @classmethod
    def normalize_primary_currency(cls, v: str) -> str:
        return v.strip().upper()


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
    def rates(self) -> RateFetcherSettings:
        return RateFetcherSettings()

    @property
    def conversion(self) -> ConversionSettings:
        return ConversionSettings()

    @property
    def reconciliation(self) -> ReconciliationSettings:
        return ReconciliationSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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
    Google Sheets is optional, so a failure there only means the
    in-memory backends will be used.
    """
    results = {}

    settings = get_settings()

    for name in ("rates", "conversion", "reconciliation", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
