"""
Shared fixtures.

Every test gets a pinned clock (2024-06-15 09:00 UTC), in-memory storage
and an audit logger whose events can be inspected.
"""

import asyncio
import inspect
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from moneyfx.audit import AuditLogger
from moneyfx.clock import FixedClock
from moneyfx.config import ConversionSettings
from moneyfx.models.rates import ExchangeRate
from moneyfx.services.conversion import CurrencyConversionEngine
from moneyfx.services.rates import RateStore
from moneyfx.services.storage import InMemoryAuditStorage, InMemoryRateStorage


TODAY = date(2024, 6, 15)
YESTERDAY = date(2024, 6, 14)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function):
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
        }
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            loop.run_until_complete(test_function(**kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


def _make_rate(base, target, rate, fx_date=TODAY, source="exchangerate-host", is_stale=False):
    return ExchangeRate(
        base_currency=base,
        target_currency=target,
        rate=Decimal(str(rate)),
        fx_date=fx_date,
        source=source,
        is_stale=is_stale,
    )


@pytest.fixture
def make_rate():
    """Factory for ExchangeRate rows (defaults: today, fresh, exchangerate-host)."""
    return _make_rate


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def usd_rates():
    """Today's USD-based quotes."""
    return [
        _make_rate("USD", "INR", "88"),
        _make_rate("USD", "EUR", "0.92"),
        _make_rate("USD", "GBP", "0.8"),
        _make_rate("USD", "JPY", "157.5"),
    ]


@pytest.fixture
def rate_storage(usd_rates):
    return InMemoryRateStorage(usd_rates)


@pytest.fixture
def store(rate_storage, clock):
    return RateStore(rate_storage, clock)


@pytest.fixture
def empty_store(clock):
    return RateStore(InMemoryRateStorage(), clock)


@pytest.fixture
def engine(store, audit_logger, clock):
    return CurrencyConversionEngine(
        store,
        settings=ConversionSettings(),
        audit_logger=audit_logger,
        clock=clock,
    )
