"""
Exchange Rate Models

An ExchangeRate is an immutable point-in-time quote: 1 base = rate target,
valid for one calendar day. Rates are never mutated; a newer day's record
supersedes an older one, and a stale record is an explicit copy carried
forward with is_stale=True.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Provider and stored rates are quantized to 6 decimal places
RATE_PRECISION = 6
RATE_QUANTUM = Decimal("0.000001")

SAME_CURRENCY_SOURCE = "same_currency"


def quantize_rate(value) -> Decimal:
    """
    Normalize a provider number to a 6-dp Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1') rather than
    its binary expansion.
    """
    if isinstance(value, bool):
        raise ValueError("Rate must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Rate is not a number: {value!r}")
    if not rate.is_finite():
        raise ValueError(f"Rate is not finite: {value!r}")
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


class ExchangeRate(BaseModel):
    """One daily quote for a currency pair."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    base_currency: str = Field(..., min_length=3, max_length=4)
    target_currency: str = Field(..., min_length=3, max_length=4)
    rate: Decimal = Field(..., gt=0, description="1 base = rate target")
    fx_date: date = Field(..., description="Calendar day the rate applies to")
    source: str = Field(..., min_length=1, description="Provider identifier")
    is_stale: bool = Field(
        default=False,
        description="Carried forward from a prior day because no fresh quote was available"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("base_currency", "target_currency")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.upper()

    @field_validator("rate", mode="before")
    @classmethod
    def normalize_rate(cls, v):
        return quantize_rate(v)

    @property
    def pair(self) -> tuple[str, str]:
        return self.base_currency, self.target_currency

    @property
    def key(self) -> tuple[str, str, date]:
        """Upsert key in the rate table."""
        return self.base_currency, self.target_currency, self.fx_date

    @classmethod
    def derived(
        cls,
        base_currency: str,
        target_currency: str,
        rate: Decimal,
        fx_date: date,
        source: str,
        is_stale: bool,
        created_at: datetime,
    ) -> "ExchangeRate":
        """
        Rate computed from stored rates (inverse or cross), never stored.

        Not rounded to RATE_PRECISION: an amount converted there and back
        must land within one minor unit (1/88 as 0.011364 turns 8,800,000
        INR into 100,003.20 USD).
        """
        return cls.model_construct(
            base_currency=base_currency,
            target_currency=target_currency,
            rate=rate,
            fx_date=fx_date,
            source=source,
            is_stale=is_stale,
            created_at=created_at,
        )

    def inverted(self) -> "ExchangeRate":
        """The same quote read the other way round (1/rate, full precision)."""
        return ExchangeRate.derived(
            base_currency=self.target_currency,
            target_currency=self.base_currency,
            rate=Decimal(1) / self.rate,
            fx_date=self.fx_date,
            source=f"{self.source}:inverse",
            is_stale=self.is_stale,
            created_at=self.created_at,
        )

    def as_stale(self, on_date: date, created_at: Optional[datetime] = None) -> "ExchangeRate":
        """Copy carried forward to on_date and flagged stale."""
        return self.model_copy(
            update={
                "fx_date": on_date,
                "is_stale": True,
                "created_at": created_at or datetime.utcnow(),
            }
        )

    @classmethod
    def identity(cls, currency: str, on_date: date) -> "ExchangeRate":
        """Rate of 1 for a same-currency 'conversion'."""
        return cls(
            base_currency=currency,
            target_currency=currency,
            rate=Decimal(1),
            fx_date=on_date,
            source=SAME_CURRENCY_SOURCE,
        )


class RateProviderConfig(BaseModel):
    """Where and how to fetch one upstream provider's latest rates."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    base_currency: str = Field(default="USD", min_length=3, max_length=3)
    priority: int = Field(default=1, description="Lower number = tried first")
    api_key: Optional[str] = None
    api_key_param: str = Field(
        default="access_key",
        description="Query parameter the API key is sent in"
    )


class RateStatistics(BaseModel):
    """Snapshot of today's rate table, for the 'rates may be outdated' banner."""

    fx_date: date
    total_rates: int = 0
    stale_rates: int = 0
    providers: list[str] = Field(default_factory=list)
    last_update: Optional[datetime] = None

    @property
    def has_stale_rates(self) -> bool:
        return self.stale_rates > 0
