"""Configuration package."""

from moneyfx.config.settings import (
    AppSettings,
    ConversionSettings,
    GoogleSheetsSettings,
    RateFetcherSettings,
    ReconciliationFrequency,
    ReconciliationSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ConversionSettings",
    "GoogleSheetsSettings",
    "RateFetcherSettings",
    "ReconciliationFrequency",
    "ReconciliationSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
