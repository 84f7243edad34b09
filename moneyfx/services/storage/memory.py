"""
In-Memory Storage Implementation

Default backend for tests and for embedding moneyfx in an app that
persists rates elsewhere. Rows live in dicts keyed the same way the
persistent backends key them, so upsert semantics match.
"""

from collections import defaultdict
from datetime import date
from typing import Optional
from uuid import UUID

from moneyfx.models.audit import AuditEvent
from moneyfx.models.rates import ExchangeRate
from moneyfx.services.storage.interface import (
    AuditStorageInterface,
    HistoryRepository,
    RateStorageInterface,
    T,
)


class InMemoryRateStorage(RateStorageInterface):
    """Rate table held in a dict keyed by (base, target, fx_date)."""

    def __init__(self, rates: Optional[list[ExchangeRate]] = None):
        self._rows: dict[tuple[str, str, date], ExchangeRate] = {}
        for rate in rates or []:
            self._rows[rate.key] = rate

    def __len__(self) -> int:
        return len(self._rows)

    async def upsert_rates(self, rates: list[ExchangeRate]) -> int:
        for rate in rates:
            self._rows[rate.key] = rate
        return len(rates)

    async def get_rate(
        self,
        base_currency: str,
        target_currency: str,
        fx_date: date,
    ) -> Optional[ExchangeRate]:
        return self._rows.get((base_currency.upper(), target_currency.upper(), fx_date))

    async def get_rates_for_date(
        self,
        fx_date: date,
        include_stale: bool = True,
    ) -> list[ExchangeRate]:
        rows = [
            rate for rate in self._rows.values()
            if rate.fx_date == fx_date and (include_stale or not rate.is_stale)
        ]
        rows.sort(key=lambda r: (r.base_currency, r.target_currency))
        return rows

    async def has_rates_for_date(self, fx_date: date) -> bool:
        return any(rate.fx_date == fx_date for rate in self._rows.values())

    async def has_stale_rates_for_date(self, fx_date: date) -> bool:
        return any(
            rate.fx_date == fx_date and rate.is_stale
            for rate in self._rows.values()
        )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]


class InMemoryHistoryRepository(HistoryRepository[T]):
    """Per-account lists in a dict."""

    def __init__(self):
        self._history: dict[str, list[T]] = defaultdict(list)

    def get(self, account_id: str) -> list[T]:
        return list(self._history.get(account_id, []))

    def append(self, account_id: str, record: T) -> None:
        self._history[account_id].append(record)

    def account_ids(self) -> list[str]:
        return [account_id for account_id, rows in self._history.items() if rows]

    def clear(self) -> None:
        self._history.clear()
