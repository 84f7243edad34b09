"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory backends are the default; Google Sheets is available for a
persistent rate table and audit log.
"""

from moneyfx.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    HistoryRepository,
    RateStorageInterface,
    StorageError,
)
from moneyfx.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryHistoryRepository,
    InMemoryRateStorage,
)
from moneyfx.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRateStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "HistoryRepository",
    "RateStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryHistoryRepository",
    "InMemoryRateStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRateStorage",
]
