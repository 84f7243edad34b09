"""
Tests for the rate providers and DailyRateFetcher.

HTTP goes through httpx.MockTransport; no network.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

import httpx

from moneyfx.config import RateFetcherSettings
from moneyfx.exceptions import ProviderError
from moneyfx.models.audit import AuditEventType
from moneyfx.models.rates import RateProviderConfig
from moneyfx.services.rates import (
    DailyRateFetcher,
    ProviderResult,
    RateProvider,
    build_default_providers,
)


TODAY = date(2024, 6, 15)
YESTERDAY = date(2024, 6, 14)


def ok_payload(**rates):
    return {"success": True, "base": "USD", "rates": rates}


def make_provider(name, priority, handler, targets=("EUR", "INR", "GBP"), api_key=None, **kwargs):
    """Provider whose HTTP calls are answered by `handler`."""
    calls = []

    async def recording_handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        response = handler(request)
        if asyncio.iscoroutine(response):
            response = await response
        return response

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    provider = RateProvider(
        RateProviderConfig(
            name=name,
            url=f"https://{name}.test/latest",
            priority=priority,
            api_key=api_key,
        ),
        list(targets),
        timeout_seconds=kwargs.get("timeout_seconds", 1.0),
        retry_attempts=kwargs.get("retry_attempts", 1),
        retry_wait_seconds=0,
        client=client,
    )
    provider.calls = calls
    return provider


def failing(status=500):
    return lambda request: httpx.Response(status, json={"error": "down"})


def succeeding(**rates):
    return lambda request: httpx.Response(200, json=ok_payload(**rates))


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


class QuotaExhaustedProvider(RateProvider):
    """Reports failure through its ProviderResult and never raises."""

    def __init__(self, name, priority):
        super().__init__(
            RateProviderConfig(name=name, url=f"https://{name}.test/latest", priority=priority),
            ["EUR"],
        )
        self.requested = []

    async def fetch(self, on_date):
        self.requested.append(on_date)
        return ProviderResult(provider=self.name, error="monthly quota exhausted")

    async def fetch_rates(self, on_date):
        raise AssertionError("fetch_rates bypasses the result object")


class TestRateProvider:
    """Tests for a single upstream provider."""

    @pytest.mark.asyncio
    async def test_parses_and_filters_payload(self):
        provider = make_provider(
            "host", 1,
            succeeding(USD=1, EUR=0.923456789, INR=88.1, CHF=0.9),
        )
        rates = await provider.fetch_rates(TODAY)

        assert [r.target_currency for r in rates] == ["EUR", "INR"]
        assert rates[0].rate == Decimal("0.923457")
        assert all(r.base_currency == "USD" for r in rates)
        assert all(r.fx_date == TODAY for r in rates)
        assert all(r.source == "host" for r in rates)
        assert all(not r.is_stale for r in rates)

    @pytest.mark.asyncio
    async def test_api_key_sent_as_query_param(self):
        provider = make_provider("fixer", 2, succeeding(EUR=0.92), api_key="secret")
        await provider.fetch_rates(TODAY)
        assert provider.calls[0].url.params["access_key"] == "secret"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        provider = make_provider("host", 1, failing(503))
        with pytest.raises(ProviderError) as exc_info:
            await provider.fetch_rates(TODAY)
        assert exc_info.value.provider == "host"
        assert "HTTP 503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_success_false_raises(self):
        provider = make_provider(
            "host", 1,
            lambda request: httpx.Response(
                200, json={"success": False, "error": {"type": "invalid_access_key"}}
            ),
        )
        with pytest.raises(ProviderError, match="invalid_access_key"):
            await provider.fetch_rates(TODAY)

    @pytest.mark.asyncio
    async def test_missing_rates_mapping_raises(self):
        provider = make_provider("host", 1, lambda request: httpx.Response(200, json={"base": "USD"}))
        with pytest.raises(ProviderError, match="rates"):
            await provider.fetch_rates(TODAY)

    @pytest.mark.asyncio
    async def test_non_json_raises(self):
        provider = make_provider("host", 1, lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ProviderError, match="not JSON"):
            await provider.fetch_rates(TODAY)

    @pytest.mark.asyncio
    async def test_bad_number_is_skipped(self):
        provider = make_provider("host", 1, succeeding(EUR="n/a", INR=88))
        rates = await provider.fetch_rates(TODAY)
        assert [r.target_currency for r in rates] == ["INR"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=ok_payload(EUR=0.92))

        provider = make_provider("slow", 1, slow, timeout_seconds=0.05)
        result = await provider.fetch(TODAY)
        assert result.ok is False
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        responses = [httpx.Response(500), httpx.Response(200, json=ok_payload(EUR=0.92))]
        provider = make_provider("flaky", 1, lambda request: responses.pop(0), retry_attempts=2)

        result = await provider.fetch(TODAY)
        assert result.ok is True
        assert len(provider.calls) == 2


class TestBuildDefaultProviders:
    """Tests for the provider list built from settings."""

    def test_fixer_skipped_without_key(self):
        providers = build_default_providers(RateFetcherSettings(fixer_api_key=None))
        assert [p.name for p in providers] == ["exchangerate-host", "exchangerate-api"]

    def test_priorities_ascending(self):
        providers = build_default_providers(RateFetcherSettings(fixer_api_key="key"))
        assert [p.name for p in providers] == ["exchangerate-host", "fixer-io", "exchangerate-api"]
        assert [p.priority for p in providers] == [1, 2, 3]
        assert providers[1].config.api_key == "key"


class TestDailyRateFetcher:
    """Tests for the daily fetch, fallback and stale carry-forward."""

    def make_fetcher(self, store, audit_logger, *providers):
        return DailyRateFetcher(
            store,
            providers=list(providers),
            settings=RateFetcherSettings(),
            audit_logger=audit_logger,
        )

    @pytest.mark.asyncio
    async def test_first_provider_wins(self, empty_store, audit_logger, audit_storage):
        first = make_provider("host", 1, succeeding(EUR=0.92, INR=88))
        second = make_provider("api", 2, succeeding(EUR=0.95))
        fetcher = self.make_fetcher(empty_store, audit_logger, second, first)

        rates = await fetcher.fetch_todays_rates()

        assert len(rates) == 2
        assert {r.source for r in rates} == {"host"}
        assert second.calls == []
        assert await fetcher.has_rates_for_today() is True
        assert AuditEventType.RATES_FETCHED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_falls_through_in_priority_order(self, empty_store, audit_logger, audit_storage):
        first = make_provider("host", 1, failing())
        second = make_provider("fixer", 2, succeeding(USD=1))  # nothing usable
        third = make_provider("api", 3, succeeding(EUR=0.95))
        fetcher = self.make_fetcher(empty_store, audit_logger, third, first, second)

        rates = await fetcher.fetch_todays_rates()

        assert [r.source for r in rates] == ["api"]
        assert len(first.calls) == 1
        assert len(second.calls) == 1
        assert event_types(audit_storage).count(AuditEventType.PROVIDER_FAILED) == 2

    @pytest.mark.asyncio
    async def test_idempotent_when_rates_exist(self, store, audit_logger, audit_storage):
        provider = make_provider("host", 1, succeeding(EUR=0.5))
        fetcher = self.make_fetcher(store, audit_logger, provider)

        assert await fetcher.fetch_todays_rates() == []
        assert provider.calls == []
        assert (await fetcher.get_rate("USD", "EUR")).rate == Decimal("0.920000")
        assert AuditEventType.RATES_ALREADY_PRESENT in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_all_fail_uses_previous_day(self, empty_store, audit_logger, audit_storage, make_rate, clock):
        await empty_store.store_rates([
            make_rate("USD", "EUR", "0.91", fx_date=YESTERDAY),
            make_rate("USD", "INR", "87.5", fx_date=YESTERDAY),
            make_rate("USD", "GBP", "0.79", fx_date=YESTERDAY, is_stale=True),
        ])
        fetcher = self.make_fetcher(
            empty_store, audit_logger,
            make_provider("host", 1, failing()),
            make_provider("api", 2, failing(404)),
        )

        rates = await fetcher.fetch_todays_rates()

        assert sorted(r.target_currency for r in rates) == ["EUR", "INR"]
        assert all(r.is_stale and r.fx_date == TODAY for r in rates)
        # stamped by the store's clock, naive UTC like every other row
        assert all(r.created_at == clock.now().replace(tzinfo=None) for r in rates)
        assert (await fetcher.get_rate_statistics()).last_update == clock.now().replace(tzinfo=None)
        assert await fetcher.check_stale_rates() is True
        stored = await fetcher.get_rates_for_date(TODAY)
        assert len(stored) == 2
        assert AuditEventType.STALE_RATES_USED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_failed_result_falls_through(self, empty_store, audit_logger, audit_storage):
        degraded = QuotaExhaustedProvider("quota", 1)
        backup = make_provider("backup", 2, succeeding(EUR=0.92))
        fetcher = self.make_fetcher(empty_store, audit_logger, backup, degraded)

        rates = await fetcher.fetch_todays_rates()

        assert degraded.requested == [TODAY]
        assert [r.source for r in rates] == ["backup"]
        failed = [e for e in audit_storage.events if e.event_type == AuditEventType.PROVIDER_FAILED]
        assert [(e.entity_id, e.error_message) for e in failed] == [("quota", "monthly quota exhausted")]

    @pytest.mark.asyncio
    async def test_nothing_anywhere(self, empty_store, audit_logger, audit_storage):
        fetcher = self.make_fetcher(empty_store, audit_logger, make_provider("host", 1, failing()))

        assert await fetcher.fetch_todays_rates() == []
        assert await fetcher.has_rates_for_today() is False
        assert AuditEventType.RATES_UNAVAILABLE in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_fetch_from_provider_raises(self, empty_store, audit_logger):
        provider = make_provider("host", 1, failing())
        fetcher = self.make_fetcher(empty_store, audit_logger, provider)
        with pytest.raises(ProviderError):
            await fetcher.fetch_from_provider(provider)

    @pytest.mark.asyncio
    async def test_concurrent_calls_fetch_once(self, empty_store, audit_logger):
        provider = make_provider("host", 1, succeeding(EUR=0.92))
        fetcher = self.make_fetcher(empty_store, audit_logger, provider)

        first, second = await asyncio.gather(
            fetcher.fetch_todays_rates(),
            fetcher.fetch_todays_rates(),
        )

        assert len(provider.calls) == 1
        assert sorted([len(first), len(second)]) == [0, 1]

    @pytest.mark.asyncio
    async def test_refresh_tick(self, empty_store, audit_logger):
        provider = make_provider("host", 1, succeeding(EUR=0.92))
        fetcher = self.make_fetcher(empty_store, audit_logger, provider)

        assert await fetcher.refresh() is True
        assert fetcher.job.runs == 1
        stats = await fetcher.get_rate_statistics()
        assert stats.total_rates == 1
        assert stats.providers == ["host"]
