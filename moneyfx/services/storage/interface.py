"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep rates in Google Sheets, a database, or memory
2. Use in-memory storage for testing
3. Keep conversion logic decoupled from storage implementation

The rate table only needs upsert-with-conflict-resolution keyed by
(base_currency, target_currency, fx_date). Nothing here assumes a
particular engine.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Generic, Optional, TypeVar
from uuid import UUID

from moneyfx.models.audit import AuditEvent
from moneyfx.models.rates import ExchangeRate


class RateStorageInterface(ABC):
    """
    Abstract interface for the daily exchange-rate table.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def upsert_rates(self, rates: list[ExchangeRate]) -> int:
        """
        Insert or overwrite rates keyed by (base, target, fx_date).

        Storing the same key twice must overwrite, never duplicate.

        Returns:
            Number of rows written

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_rate(
        self,
        base_currency: str,
        target_currency: str,
        fx_date: date,
    ) -> Optional[ExchangeRate]:
        """
        Exact-key lookup.

        Returns:
            The rate if stored for that day, None otherwise
        """
        pass

    @abstractmethod
    async def get_rates_for_date(
        self,
        fx_date: date,
        include_stale: bool = True,
    ) -> list[ExchangeRate]:
        """
        All rates for one day, ordered by base then target currency.

        Args:
            fx_date: Day to read
            include_stale: If False, only fresh rows are returned
        """
        pass

    @abstractmethod
    async def has_rates_for_date(self, fx_date: date) -> bool:
        """Check if any row exists for the day."""
        pass

    @abstractmethod
    async def has_stale_rates_for_date(self, fx_date: date) -> bool:
        """Check if any stale row exists for the day."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one conversion).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


T = TypeVar("T")


class HistoryRepository(ABC, Generic[T]):
    """
    Per-account append-only history.

    Synchronous on purpose: appending a reconciliation record is part of
    the arithmetic step and must not suspend the caller.
    """

    @abstractmethod
    def get(self, account_id: str) -> list[T]:
        """All records for the account, oldest first (empty if none)."""
        pass

    @abstractmethod
    def append(self, account_id: str, record: T) -> None:
        """Add a record to the end of the account's history."""
        pass

    @abstractmethod
    def account_ids(self) -> list[str]:
        """Accounts that have at least one record."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop all history (tests and resets only)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
