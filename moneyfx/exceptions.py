"""
Typed exceptions for moneyfx.

Every error carries a machine-readable `code` so callers (and the audit
log) can branch on type rather than message text.

    MoneyFXError
    +-- ValidationError        malformed input, never retried
    +-- ComplianceError        restricted currency, blocked before conversion
    +-- ConversionError
    |   +-- RateUnavailableError   no fresh or stale rate for a required pair
    +-- ProviderError          one upstream provider failed (recovered internally)
    +-- ReconciliationError

Storage errors live with the storage interface.
"""

from datetime import date
from typing import Optional


class MoneyFXError(Exception):
    """Base exception for all moneyfx errors."""

    code: str = "MONEYFX_ERROR"


class ValidationError(MoneyFXError):
    """Input failed validation (bad currency code, bad amount, same accounts)."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)


class ComplianceError(MoneyFXError):
    """A sanctioned/restricted currency was involved."""

    code: str = "COMPLIANCE_ERROR"

    def __init__(self, currency: str, message: Optional[str] = None):
        self.currency = currency
        super().__init__(
            message or f"Currency {currency} is restricted and cannot be converted"
        )


class ConversionError(MoneyFXError):
    """A conversion could not be completed."""

    code: str = "CONVERSION_ERROR"


class RateUnavailableError(ConversionError):
    """No rate, fresh or stale, exists for the pair."""

    code: str = "RATE_UNAVAILABLE"

    def __init__(self, from_currency: str, to_currency: str, as_of: date):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.as_of = as_of
        super().__init__(
            f"No exchange rate found for {from_currency}/{to_currency} as of {as_of.isoformat()}"
        )


class ProviderError(MoneyFXError):
    """One upstream rate provider failed (HTTP error, timeout, bad payload)."""

    code: str = "PROVIDER_ERROR"

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"Provider {provider} failed: {message}")


class ReconciliationError(MoneyFXError):
    """An account could not be reconciled."""

    code: str = "RECONCILIATION_ERROR"
