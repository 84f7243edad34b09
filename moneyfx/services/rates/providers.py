"""
Upstream Exchange-Rate Providers

DESIGN DECISION: Each provider is a small strategy object with the same
contract, so the fetcher can walk them in priority order without knowing
which API it is talking to. All three public APIs we use return the same
shape:

    {"success": true, "base": "USD", "rates": {"EUR": 0.92, ...}}

(`success` is absent on some of them.)

Failure handling:
- fetch_rates() raises ProviderError for HTTP errors, timeouts and
  malformed payloads, after retrying with tenacity
- fetch() never raises; it wraps the outcome in a ProviderResult so the
  fetcher can move on to the next provider
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from moneyfx.config import RateFetcherSettings
from moneyfx.exceptions import ProviderError
from moneyfx.models.rates import ExchangeRate, RateProviderConfig


logger = structlog.get_logger(__name__)


@dataclass
class ProviderResult:
    """Outcome of one provider call."""

    provider: str
    rates: list[ExchangeRate] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.rates)


class RateProvider:
    """
    One upstream API.

    Usage:
        provider = RateProvider(config, ["EUR", "INR"])
        result = await provider.fetch(date.today())
        if result.ok:
            ...
    """

    def __init__(
        self,
        config: RateProviderConfig,
        target_currencies: list[str],
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        retry_wait_seconds: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self._targets = {code.upper() for code in target_currencies}
        self._timeout = timeout_seconds
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait_seconds
        self._client = client

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def priority(self) -> int:
        return self.config.priority

    async def fetch(self, on_date: date) -> ProviderResult:
        """Fetch and never raise."""
        try:
            rates = await self.fetch_rates(on_date)
        except ProviderError as e:
            return ProviderResult(provider=self.name, error=str(e))
        return ProviderResult(provider=self.name, rates=rates)

    async def fetch_rates(self, on_date: date) -> list[ExchangeRate]:
        """
        Fetch the provider's latest rates and stamp them with on_date.

        Raises:
            ProviderError: After all retry attempts failed
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=10),
            retry=retry_if_exception_type(ProviderError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "provider_retry",
                        provider=self.name,
                        attempt=attempt.retry_state.attempt_number,
                    )
                payload = await self._request()
                return self._parse(payload, on_date)
        # AsyncRetrying with reraise=True never falls through
        raise ProviderError(self.name, "no attempts made")

    async def _request(self) -> dict[str, Any]:
        params = {}
        if self.config.api_key:
            params[self.config.api_key_param] = self.config.api_key

        try:
            if self._client is not None:
                response = await asyncio.wait_for(
                    self._client.get(self.config.url, params=params),
                    timeout=self._timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await asyncio.wait_for(
                        client.get(self.config.url, params=params),
                        timeout=self._timeout,
                    )
        except asyncio.TimeoutError:
            raise ProviderError(self.name, f"timed out after {self._timeout}s")
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}")

        if response.status_code >= 400:
            raise ProviderError(self.name, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise ProviderError(self.name, "response is not JSON")

        if not isinstance(payload, dict):
            raise ProviderError(self.name, "response is not a JSON object")
        return payload

    def _parse(self, payload: dict[str, Any], on_date: date) -> list[ExchangeRate]:
        raw_rates = payload.get("rates")
        if payload.get("success") is False and not raw_rates:
            error = payload.get("error")
            if isinstance(error, dict):
                error = error.get("info") or error.get("type")
            raise ProviderError(self.name, f"provider reported failure: {error or 'unknown'}")
        if not isinstance(raw_rates, dict):
            raise ProviderError(self.name, "payload has no 'rates' mapping")

        base = str(payload.get("base") or self.config.base_currency).upper()
        rates = []
        for code, value in raw_rates.items():
            code = str(code).upper()
            if code == base or code not in self._targets:
                continue
            try:
                rates.append(
                    ExchangeRate(
                        base_currency=base,
                        target_currency=code,
                        rate=value,
                        fx_date=on_date,
                        source=self.name,
                    )
                )
            except ValueError as e:
                # One bad number should not discard the whole day
                logger.warning(
                    "provider_rate_skipped",
                    provider=self.name,
                    currency=code,
                    error=str(e),
                )

        rates.sort(key=lambda r: r.target_currency)
        return rates


def build_default_providers(
    settings: RateFetcherSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> list[RateProvider]:
    """
    The three public providers, ascending priority.

    Fixer.io requires an access key and is left out when none is configured.
    """
    configs = [
        RateProviderConfig(
            name="exchangerate-host",
            url=settings.exchangerate_host_url,
            base_currency=settings.base_currency,
            priority=1,
            api_key=settings.exchangerate_host_api_key,
        ),
    ]
    if settings.fixer_api_key:
        configs.append(
            RateProviderConfig(
                name="fixer-io",
                url=settings.fixer_url,
                base_currency=settings.base_currency,
                priority=2,
                api_key=settings.fixer_api_key,
            )
        )
    configs.append(
        RateProviderConfig(
            name="exchangerate-api",
            url=settings.exchangerate_api_url,
            base_currency=settings.base_currency,
            priority=3,
        )
    )

    return [
        RateProvider(
            config,
            target_currencies=settings.target_currency_list,
            timeout_seconds=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_wait_seconds=settings.retry_wait_seconds,
            client=client,
        )
        for config in configs
    ]
