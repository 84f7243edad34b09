"""Exchange-rate services: storage access, upstream providers, daily fetch."""

from moneyfx.services.rates.fetcher import DailyRateFetcher
from moneyfx.services.rates.providers import (
    ProviderResult,
    RateProvider,
    build_default_providers,
)
from moneyfx.services.rates.store import RateStore

__all__ = [
    "DailyRateFetcher",
    "ProviderResult",
    "RateProvider",
    "RateStore",
    "build_default_providers",
]
