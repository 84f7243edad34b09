"""
Data Models Package

This package contains all Pydantic models used by moneyfx.
All data flowing through the system must conform to these schemas.
"""

from moneyfx.models.currency import (
    DEFAULT_CURRENCIES,
    RESTRICTED_CURRENCIES,
    CurrencyInfo,
    CurrencyRegistry,
    SymbolPosition,
    get_currency_registry,
)
from moneyfx.models.rates import (
    RATE_PRECISION,
    SAME_CURRENCY_SOURCE,
    ExchangeRate,
    RateProviderConfig,
    RateStatistics,
    quantize_rate,
)
from moneyfx.models.conversion import (
    DEFAULT_FEE_PERCENTAGE,
    ConversionCase,
    ConversionRequest,
    ConversionResult,
    TransactionType,
    TransferAuditTrail,
    TransferRequest,
    TransferResult,
    TransferStatistics,
    TransferTransaction,
    TransferValidation,
    ValidationIssue,
)
from moneyfx.models.reconciliation import (
    AccountBalance,
    AccountGainLoss,
    FXGainLoss,
    FXGainLossSummary,
    ReconciliationResult,
    ReconciliationStatus,
)
from moneyfx.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Currency table
    "DEFAULT_CURRENCIES",
    "RESTRICTED_CURRENCIES",
    "CurrencyInfo",
    "CurrencyRegistry",
    "SymbolPosition",
    "get_currency_registry",
    # Rates
    "RATE_PRECISION",
    "SAME_CURRENCY_SOURCE",
    "ExchangeRate",
    "RateProviderConfig",
    "RateStatistics",
    "quantize_rate",
    # Conversion / transfer
    "DEFAULT_FEE_PERCENTAGE",
    "ConversionCase",
    "ConversionRequest",
    "ConversionResult",
    "TransactionType",
    "TransferAuditTrail",
    "TransferRequest",
    "TransferResult",
    "TransferStatistics",
    "TransferTransaction",
    "TransferValidation",
    "ValidationIssue",
    # Reconciliation
    "AccountBalance",
    "AccountGainLoss",
    "FXGainLoss",
    "FXGainLossSummary",
    "ReconciliationResult",
    "ReconciliationStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
