"""
Conversion and Transfer Models

A conversion carries one entered amount across three currency roles:

    entered  - what the user typed
    account  - the currency of the account the money lands in / leaves
    primary  - the user's reporting currency

DESIGN DECISION: Results are immutable and produced fresh per call.
Nothing here is persisted by the conversion layer; saving the resulting
transactions is the caller's job.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from moneyfx.models.rates import ExchangeRate


DEFAULT_FEE_PERCENTAGE = Decimal("0.0025")


# =============================================================================
# ENUMS
# =============================================================================

class ConversionCase(str, Enum):
    """
    Which of the three currency roles coincide.

    AMOUNT_DIFFERENT_OTHERS_SAME describes the same condition as
    ACCOUNT_PRIMARY_SAME (account = primary, entered differs). The
    classifier always answers ACCOUNT_PRIMARY_SAME; the alias is kept
    for callers that still use the display-side name.
    """
    ALL_SAME = "all_same"
    AMOUNT_ACCOUNT_SAME = "amount_account_same"
    AMOUNT_PRIMARY_SAME = "amount_primary_same"
    ACCOUNT_PRIMARY_SAME = "account_primary_same"
    ALL_DIFFERENT = "all_different"
    AMOUNT_DIFFERENT_OTHERS_SAME = "amount_different_others_same"

    @property
    def canonical(self) -> "ConversionCase":
        if self is ConversionCase.AMOUNT_DIFFERENT_OTHERS_SAME:
            return ConversionCase.ACCOUNT_PRIMARY_SAME
        return self


class TransactionType(str, Enum):
    """Direction of one transfer leg."""
    EXPENSE = "expense"
    INCOME = "income"


# =============================================================================
# CONVERSION
# =============================================================================

class ConversionRequest(BaseModel):
    """
    Input to a single conversion.

    The amount is deliberately unconstrained here: range and finiteness
    are checked by ConversionValidator so the caller gets the domain
    ValidationError rather than a pydantic one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., allow_inf_nan=True)
    entered_currency: str
    account_currency: str
    primary_currency: str
    include_fees: bool = False
    fee_percentage: Decimal = Field(
        default=DEFAULT_FEE_PERCENTAGE,
        allow_inf_nan=True,
        description="Fraction of the entered amount (0.0025 = 0.25%)"
    )
    audit_context: str = Field(default="manual_conversion", max_length=100)

    @field_validator("entered_currency", "account_currency", "primary_currency")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("amount", "fee_percentage", mode="before")
    @classmethod
    def float_via_str(cls, v):
        if isinstance(v, float):
            return str(v)
        return v


class ConversionResult(BaseModel):
    """Three-way amount breakdown plus fee and audit metadata."""
    model_config = ConfigDict(frozen=True)

    # Entered values
    entered_amount: Decimal
    entered_currency: str
    entered_symbol: str

    # Account values
    account_amount: Decimal
    account_currency: str
    account_symbol: str

    # Primary values
    primary_amount: Decimal
    primary_currency: str
    primary_symbol: str

    # Conversion metadata
    exchange_rate: Decimal
    conversion_source: str
    conversion_timestamp: datetime
    conversion_case: ConversionCase
    rate_lookups: int = Field(
        default=0,
        ge=0,
        le=2,
        description="Rate-store lookups this conversion needed"
    )
    is_stale: bool = False

    # Fees and costs (entered currency)
    conversion_fee: Decimal = Decimal(0)
    total_cost: Decimal

    # Audit trail
    rate_record: Optional[ExchangeRate] = None
    primary_rate_record: Optional[ExchangeRate] = None
    audit_id: UUID = Field(default_factory=uuid4)

    @property
    def display_text(self) -> str:
        """Transparency line shown under a converted amount."""
        record = self.rate_record or self.primary_rate_record
        if record is None:
            return "Same currency - no conversion needed"
        stale = " (stale)" if record.is_stale else ""
        return (
            f"Converted using rate {record.rate:.6f} ({record.source}) "
            f"on {record.fx_date.isoformat()}{stale}"
        )


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found while checking a request."""

    field: str
    issue_type: str
    message: str
    severity: Literal["error", "warning"]


class TransferValidation(BaseModel):
    """Pre-flight result for a transfer."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

    @property
    def has_compliance_errors(self) -> bool:
        return any(
            i.issue_type == "restricted_currency" and i.severity == "error"
            for i in self.issues
        )


# =============================================================================
# TRANSFER
# =============================================================================

class TransferRequest(BaseModel):
    """Money moving from one account to another."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., allow_inf_nan=True)
    from_account_id: str = Field(..., min_length=1)
    to_account_id: str = Field(..., min_length=1)
    from_account_currency: str
    to_account_currency: str
    primary_currency: str
    entered_currency: Optional[str] = Field(
        default=None,
        description="Currency the amount was typed in; defaults to the source account currency"
    )
    description: str = Field(default="", max_length=500)
    include_fees: bool = False
    fee_percentage: Decimal = DEFAULT_FEE_PERCENTAGE
    audit_context: str = Field(default="transfer", max_length=100)

    @field_validator(
        "from_account_currency", "to_account_currency", "primary_currency", "entered_currency"
    )
    @classmethod
    def uppercase_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    @field_validator("amount", "fee_percentage", mode="before")
    @classmethod
    def float_via_str(cls, v):
        if isinstance(v, float):
            return str(v)
        return v

    @property
    def source_currency(self) -> str:
        return self.entered_currency or self.from_account_currency

    @property
    def is_cross_currency(self) -> bool:
        return self.from_account_currency != self.to_account_currency


class TransferTransaction(BaseModel):
    """One leg of a transfer, ready for the ledger layer to persist."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: TransactionType
    amount: Decimal
    currency: str
    symbol: str
    account_id: str
    description: str
    conversion: ConversionResult


class TransferAuditTrail(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_audit_id: UUID
    destination_audit_id: UUID
    transfer_audit_id: UUID


class TransferResult(BaseModel):
    """A matched expense/income pair plus FX effect and fees."""
    model_config = ConfigDict(frozen=True)

    transfer_id: UUID = Field(default_factory=uuid4)
    transfer_timestamp: datetime = Field(default_factory=datetime.utcnow)
    source_transaction: TransferTransaction
    destination_transaction: TransferTransaction
    total_fees: Decimal
    fx_gain_loss: Decimal
    audit_trail: TransferAuditTrail

    @property
    def source_leg(self) -> ConversionResult:
        return self.source_transaction.conversion

    @property
    def destination_leg(self) -> ConversionResult:
        return self.destination_transaction.conversion


class TransferStatistics(BaseModel):
    """Running counters kept by the transfer service."""

    total_transfers: int = 0
    cross_currency_transfers: int = 0
    same_currency_transfers: int = 0
    total_fees: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Accumulated fees per entered currency"
    )
    total_fx_gain_loss: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Accumulated FX gain/loss per primary currency"
    )
