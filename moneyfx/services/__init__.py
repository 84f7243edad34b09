"""
Services package.

Storage backends are re-exported here. The rate, conversion, transfer and
reconciliation services depend on the audit logger, which itself depends
on storage, so import them from their own modules:

    from moneyfx.services.rates import DailyRateFetcher, RateStore
    from moneyfx.services.conversion import CurrencyConversionEngine
"""

from moneyfx.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRateStorage,
    HistoryRepository,
    InMemoryAuditStorage,
    InMemoryHistoryRepository,
    InMemoryRateStorage,
    RateStorageInterface,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRateStorage",
    "HistoryRepository",
    "InMemoryAuditStorage",
    "InMemoryHistoryRepository",
    "InMemoryRateStorage",
    "RateStorageInterface",
    "StorageError",
]
