"""Tests for the component factory."""

import pytest
from decimal import Decimal

import httpx

from moneyfx.models.rates import RateProviderConfig
from moneyfx.orchestrator import create_app_components
from moneyfx.services.rates import RateProvider


def stub_provider():
    def handler(request):
        return httpx.Response(
            200, json={"success": True, "base": "USD", "rates": {"EUR": 0.92, "INR": 88}}
        )

    return RateProvider(
        RateProviderConfig(name="stub", url="https://stub.test/latest"),
        ["EUR", "INR"],
        retry_attempts=1,
        retry_wait_seconds=0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestCreateAppComponents:
    """The wired graph works end to end with in-memory storage."""

    def test_in_memory_by_default(self, clock):
        components = create_app_components(clock=clock)
        assert components.sheets_client is None
        assert components.engine.clock is clock
        assert components.rate_refresh_job.name == "rate_refresh"

    def test_primary_currency_from_environment(self, clock, monkeypatch):
        monkeypatch.setenv("PRIMARY_CURRENCY", "inr")
        components = create_app_components(clock=clock)
        assert components.primary_currency == "INR"
        assert components.reconciliation_job(lambda: []).name == "reconciliation"

    @pytest.mark.asyncio
    async def test_fetch_then_convert(self, clock):
        components = create_app_components(clock=clock, providers=[stub_provider()])

        stored = await components.fetcher.fetch_todays_rates()
        assert len(stored) == 2

        result = await components.engine.convert_amount(Decimal("10"), "EUR", "INR", "USD")
        # EUR->INR = 88 / 0.92 = 95.65217...
        assert result.account_amount == Decimal("956.52")
        assert result.primary_amount == Decimal("10.87")
