"""
Daily Rate Fetcher

Keeps the rate table populated with one set of rates per calendar day.

Flow for fetch_todays_rates():
1. Today already has rates -> return [] (no provider is called)
2. Try providers in ascending priority, one at a time
3. First provider that returns rates wins; they are stored and returned
4. Every provider failed -> carry yesterday's fresh rates forward,
   flagged stale
5. No rates yesterday either -> return [] and record it

Provider failures never escape this module. The conversion engine finds
out about missing rates when it looks one up.
"""

import asyncio
from datetime import date, timezone
from typing import Optional

import structlog

from moneyfx.audit import AuditLogger
from moneyfx.config import RateFetcherSettings
from moneyfx.exceptions import ProviderError
from moneyfx.models.audit import AuditEventBuilder
from moneyfx.models.rates import ExchangeRate, RateStatistics
from moneyfx.services.rates.providers import RateProvider, build_default_providers
from moneyfx.services.rates.store import RateStore
from moneyfx.services.scheduler import PeriodicJob


logger = structlog.get_logger(__name__)

NO_USABLE_RATES = "no rates for the configured currencies"


class DailyRateFetcher:
    """
    Fetches, stores and falls back on daily exchange rates.

    Usage:
        fetcher = DailyRateFetcher(store)
        rates = await fetcher.fetch_todays_rates()
    """

    def __init__(
        self,
        store: RateStore,
        providers: Optional[list[RateProvider]] = None,
        settings: Optional[RateFetcherSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or RateFetcherSettings()
        self._store = store
        if providers is None:
            providers = build_default_providers(self._settings)
        self._providers = sorted(providers, key=lambda p: p.priority)
        self._audit = audit_logger or AuditLogger()
        self._lock = asyncio.Lock()
        self._job: Optional[PeriodicJob] = None

    @property
    def providers(self) -> list[RateProvider]:
        return list(self._providers)

    @property
    def store(self) -> RateStore:
        return self._store

    @property
    def job(self) -> PeriodicJob:
        """Background refresh job (created on first access, not started)."""
        if self._job is None:
            self._job = PeriodicJob(
                "rate_refresh",
                self.fetch_todays_rates,
                self._settings.refresh_interval_minutes * 60,
            )
        return self._job

    async def has_rates_for_today(self) -> bool:
        return await self._store.has_rates_for_today()

    async def fetch_from_provider(self, provider: RateProvider) -> list[ExchangeRate]:
        """
        Fetch today's rates from one provider without storing them.

        Raises:
            ProviderError: If the provider fails or returns nothing usable
        """
        rates = await provider.fetch_rates(self._store.clock.today())
        if not rates:
            raise ProviderError(provider.name, NO_USABLE_RATES)
        return rates

    async def fetch_todays_rates(self) -> list[ExchangeRate]:
        """
        Make sure today has rates.

        Returns the newly stored rates, or [] if today was already
        populated or nothing could be found. Concurrent callers are
        serialized so a day is never fetched twice.
        """
        async with self._lock:
            today = self._store.clock.today()

            if await self._store.has_rates_for_date(today):
                logger.debug("rates_already_present", fx_date=today.isoformat())
                await self._audit.log(AuditEventBuilder.rates_already_present(today))
                return []

            for provider in self._providers:
                result = await provider.fetch(today)
                if not result.ok:
                    error = result.error or NO_USABLE_RATES
                    logger.warning("provider_failed", provider=provider.name, error=error)
                    await self._audit.log(AuditEventBuilder.provider_failed(provider.name, error))
                    continue

                rates = result.rates
                await self._store.store_rates(rates)
                logger.info(
                    "rates_fetched",
                    provider=provider.name,
                    count=len(rates),
                    fx_date=today.isoformat(),
                )
                await self._audit.log(AuditEventBuilder.rates_fetched(provider.name, len(rates), today))
                return rates

            logger.warning("all_providers_failed", providers=[p.name for p in self._providers])
            return await self.use_previous_day_rates()

    async def use_previous_day_rates(self) -> list[ExchangeRate]:
        """
        Carry yesterday's fresh rates forward to today, flagged stale.

        Rates that were already stale yesterday are not carried again.
        """
        today = self._store.clock.today()
        yesterday = self._store.clock.yesterday()

        previous = await self._store.get_rates_for_date(yesterday, include_stale=False)
        if not previous:
            logger.error("rates_unavailable", fx_date=today.isoformat())
            await self._audit.log(AuditEventBuilder.rates_unavailable(today))
            return []

        # created_at is naive UTC throughout the rate table
        now = self._store.clock.now().astimezone(timezone.utc).replace(tzinfo=None)
        stale = [rate.as_stale(today, created_at=now) for rate in previous]
        await self._store.store_rates(stale)
        logger.warning(
            "stale_rates_used",
            count=len(stale),
            from_date=yesterday.isoformat(),
            to_date=today.isoformat(),
        )
        await self._audit.log(AuditEventBuilder.stale_rates_used(len(stale), yesterday, today))
        return stale

    async def get_rate(
        self,
        base_currency: str,
        target_currency: str,
        fx_date: Optional[date] = None,
    ) -> Optional[ExchangeRate]:
        return await self._store.get_rate(base_currency, target_currency, fx_date)

    async def get_rates_for_date(self, fx_date: date) -> list[ExchangeRate]:
        return await self._store.get_rates_for_date(fx_date)

    async def check_stale_rates(self) -> bool:
        return await self._store.check_stale_rates()

    async def get_rate_statistics(self) -> RateStatistics:
        return await self._store.get_rate_statistics()

    async def refresh(self) -> bool:
        """One scheduled tick. False if the previous tick is still running."""
        return await self.job.run_once()
