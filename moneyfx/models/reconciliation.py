"""
Reconciliation Models

Reconciliation revalues a foreign-currency balance at today's rate and
records how much value currency movement added or removed.

Per account the lifecycle is:

    needs_reconciliation -> reconciling -> reconciled -> needs_reconciliation

The FX gain/loss history is the append-only audit trail of those
movements; rows are never edited.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReconciliationStatus(str, Enum):
    """Where an account is in the reconciliation cycle."""
    NEEDS_RECONCILIATION = "needs_reconciliation"
    RECONCILING = "reconciling"
    RECONCILED = "reconciled"


class AccountBalance(BaseModel):
    """
    Caller-supplied account snapshot.

    The ledger layer owns accounts; reconciliation only ever sees
    these snapshots.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    currency: str = Field(..., min_length=3, max_length=4)
    balance: Decimal
    original_rate: Decimal = Field(
        ...,
        gt=0,
        description="Rate (account -> primary) at which the balance was originally booked"
    )

    @field_validator("currency")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.upper()


class FXGainLoss(BaseModel):
    """One row of the FX gain/loss history."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    account_id: str
    currency: str
    original_amount: Decimal
    original_rate: Decimal
    current_amount: Decimal
    current_rate: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal
    period: str = Field(..., description="Accounting period, e.g. '2024-06'")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    is_realized: bool = False


class ReconciliationResult(BaseModel):
    """Revaluation of one account for one accounting period."""
    model_config = ConfigDict(frozen=True)

    account_id: str
    currency: str
    primary_currency: Optional[str] = None

    original_balance: Decimal = Field(..., description="Balance in the account currency")
    original_rate: Decimal
    current_rate: Decimal
    original_value: Decimal = Field(..., description="Balance priced at the original rate")
    current_balance: Decimal = Field(..., description="Balance re-priced at the current rate")

    fx_gain_loss: Decimal
    fx_gain_loss_percentage: Decimal
    unrealized_gain_loss: Decimal
    realized_gain_loss: Decimal = Decimal(0)

    period: str
    last_reconciliation: datetime
    next_reconciliation: datetime

    @property
    def is_gain(self) -> bool:
        return self.fx_gain_loss > 0


class AccountGainLoss(BaseModel):
    """Per-account line in a period summary."""

    account_id: str
    currency: str
    gain_loss: Decimal
    gain_loss_percentage: Decimal


class FXGainLossSummary(BaseModel):
    """Aggregate FX gain/loss for one accounting period."""

    period: str
    total_gain_loss: Decimal = Decimal(0)
    total_unrealized_gain_loss: Decimal = Decimal(0)
    total_realized_gain_loss: Decimal = Decimal(0)
    account_breakdown: list[AccountGainLoss] = Field(default_factory=list)
