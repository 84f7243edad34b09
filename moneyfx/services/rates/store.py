"""
Rate Store

Read/write access to the daily exchange-rate table with the fallbacks the
conversion layer relies on:

- exact day, then one day back
- direct pair, then the inverse pair, then a cross rate through a
  common base currency (providers quote everything against one base,
  so INR->EUR only exists as USD->INR and USD->EUR)

Writes are upserts keyed by (base, target, fx_date); re-storing a day is
safe and overwrites.
"""

from datetime import date, timedelta
from typing import Optional

import structlog

from moneyfx.clock import Clock, SystemClock
from moneyfx.models.rates import ExchangeRate, RateStatistics
from moneyfx.services.storage import InMemoryRateStorage, RateStorageInterface


logger = structlog.get_logger(__name__)


class RateStore:
    """
    The only shared mutable resource in moneyfx.

    Owns no state itself beyond the storage backend and the clock.
    """

    def __init__(
        self,
        storage: Optional[RateStorageInterface] = None,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage or InMemoryRateStorage()
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock

    async def store_rates(self, rates: list[ExchangeRate]) -> int:
        """Upsert rates. Returns the number of rows written."""
        if not rates:
            return 0
        written = await self._storage.upsert_rates(rates)
        logger.info("rates_stored", count=written, fx_date=rates[0].fx_date.isoformat())
        return written

    async def has_rates_for_date(self, fx_date: date) -> bool:
        return await self._storage.has_rates_for_date(fx_date)

    async def has_rates_for_today(self) -> bool:
        return await self.has_rates_for_date(self._clock.today())

    async def get_rates_for_date(
        self,
        fx_date: date,
        include_stale: bool = True,
    ) -> list[ExchangeRate]:
        return await self._storage.get_rates_for_date(fx_date, include_stale=include_stale)

    async def check_stale_rates(self, fx_date: Optional[date] = None) -> bool:
        """True if the day's rate set contains any carried-forward rate."""
        return await self._storage.has_stale_rates_for_date(fx_date or self._clock.today())

    async def get_rate(
        self,
        base_currency: str,
        target_currency: str,
        fx_date: Optional[date] = None,
    ) -> Optional[ExchangeRate]:
        """
        Exact-pair lookup with one-day-back fallback.

        Same-currency pairs return an identity rate without touching storage.
        """
        base_currency = base_currency.upper()
        target_currency = target_currency.upper()
        fx_date = fx_date or self._clock.today()

        if base_currency == target_currency:
            return ExchangeRate.identity(base_currency, fx_date)

        for day in (fx_date, fx_date - timedelta(days=1)):
            rate = await self._storage.get_rate(base_currency, target_currency, day)
            if rate is not None:
                return rate
        return None

    async def find_rate(
        self,
        from_currency: str,
        to_currency: str,
        fx_date: Optional[date] = None,
    ) -> Optional[ExchangeRate]:
        """
        Conversion-grade lookup: direct, inverse, then cross rate.

        Every form is tried on the day before falling back to the day
        before it, so today's inverse quote beats yesterday's direct one.
        Returns None only when no combination of stored rates (for the day
        or the day before) links the two currencies.
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        fx_date = fx_date or self._clock.today()

        if from_currency == to_currency:
            return ExchangeRate.identity(from_currency, fx_date)

        for day in (fx_date, fx_date - timedelta(days=1)):
            direct = await self._storage.get_rate(from_currency, to_currency, day)
            if direct is not None:
                return direct

            inverse = await self._storage.get_rate(to_currency, from_currency, day)
            if inverse is not None:
                return inverse.inverted()

            cross = await self._find_cross_rate(from_currency, to_currency, day)
            if cross is not None:
                return cross
        return None

    async def _find_cross_rate(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
    ) -> Optional[ExchangeRate]:
        rows = await self._storage.get_rates_for_date(day)
        # base -> {target: rate}
        by_base: dict[str, dict[str, ExchangeRate]] = {}
        for row in rows:
            by_base.setdefault(row.base_currency, {})[row.target_currency] = row

        for base, quotes in sorted(by_base.items()):
            base_to_from = quotes.get(from_currency)
            base_to_to = quotes.get(to_currency)
            if base_to_from is None or base_to_to is None:
                continue
            # 1 from = (base->to / base->from) to
            return ExchangeRate.derived(
                base_currency=from_currency,
                target_currency=to_currency,
                rate=base_to_to.rate / base_to_from.rate,
                fx_date=day,
                source=f"{base_to_to.source}:cross:{base}",
                is_stale=base_to_from.is_stale or base_to_to.is_stale,
                created_at=max(base_to_from.created_at, base_to_to.created_at),
            )
        return None

    async def get_rate_statistics(self, fx_date: Optional[date] = None) -> RateStatistics:
        """Counts for the UI banner: how many rates today, how many stale, from whom."""
        fx_date = fx_date or self._clock.today()
        rows = await self._storage.get_rates_for_date(fx_date)
        return RateStatistics(
            fx_date=fx_date,
            total_rates=len(rows),
            stale_rates=sum(1 for row in rows if row.is_stale),
            providers=sorted({row.source for row in rows}),
            last_update=max((row.created_at for row in rows), default=None),
        )
