"""
Audit Models for moneyfx

Every rate fetch, conversion, transfer and reconciliation produces an
audit event. This provides:
1. A trail from any converted amount back to the rate and provider used
2. Debugging information when providers misbehave
3. A record of FX gain/loss revaluations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Rate fetching
    RATES_FETCHED = "rates_fetched"
    RATES_ALREADY_PRESENT = "rates_already_present"
    PROVIDER_FAILED = "provider_failed"
    STALE_RATES_USED = "stale_rates_used"
    RATES_UNAVAILABLE = "rates_unavailable"

    # Conversion
    CONVERSION_COMPLETED = "conversion_completed"
    CONVERSION_FAILED = "conversion_failed"

    # Transfers
    TRANSFER_CREATED = "transfer_created"
    TRANSFER_REJECTED = "transfer_rejected"

    # Reconciliation
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    RECONCILIATION_FAILED = "reconciliation_failed"
    SIGNIFICANT_FX_CHANGE = "significant_fx_change"
    PERIOD_FROZEN = "period_frozen"
    PERIOD_UNFROZEN = "period_unfrozen"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'rates', 'conversion', 'account')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - a conversion's audit_id, a transfer id, ...
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.rates_fetched("fixer-io", 34, today)
        event = AuditEventBuilder.conversion_completed(result)
    """

    @staticmethod
    def rates_fetched(provider: str, count: int, fx_date: date) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_FETCHED,
            entity_type="rates",
            entity_id=fx_date.isoformat(),
            description=f"Fetched {count} rates from {provider}",
            details={"provider": provider, "count": count},
        )

    @staticmethod
    def rates_already_present(fx_date: date) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_ALREADY_PRESENT,
            severity=AuditSeverity.DEBUG,
            entity_type="rates",
            entity_id=fx_date.isoformat(),
            description=f"Rates for {fx_date.isoformat()} already stored, fetch skipped",
        )

    @staticmethod
    def provider_failed(provider: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="provider",
            entity_id=provider,
            description=f"Rate provider {provider} failed",
            error_code="provider_error",
            error_message=error_message,
        )

    @staticmethod
    def stale_rates_used(count: int, from_date: date, to_date: date) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RATES_USED,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            entity_id=to_date.isoformat(),
            description=f"All providers failed; carried {count} rates forward from {from_date.isoformat()}",
            details={"count": count, "from_date": from_date.isoformat()},
        )

    @staticmethod
    def rates_unavailable(fx_date: date) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="rates",
            entity_id=fx_date.isoformat(),
            description="All providers failed and no previous-day rates exist",
            error_code="rates_unavailable",
        )

    @staticmethod
    def conversion_completed(
        audit_id: UUID,
        conversion_case: str,
        entered: str,
        account: str,
        primary: str,
        source: str,
        is_stale: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSION_COMPLETED,
            severity=AuditSeverity.WARNING if is_stale else AuditSeverity.INFO,
            entity_type="conversion",
            entity_id=str(audit_id),
            correlation_id=audit_id,
            description=f"Converted {entered} for {account} account (primary {primary})",
            details={
                "conversion_case": conversion_case,
                "source": source,
                "is_stale": is_stale,
            },
        )

    @staticmethod
    def conversion_failed(
        audit_id: UUID,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="conversion",
            entity_id=str(audit_id),
            correlation_id=audit_id,
            description=f"Conversion failed: {error_type}",
            details=details or {},
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def transfer_created(
        transfer_id: UUID,
        from_account_id: str,
        to_account_id: str,
        total_fees: str,
        fx_gain_loss: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_CREATED,
            entity_type="transfer",
            entity_id=str(transfer_id),
            correlation_id=transfer_id,
            description=f"Transfer {from_account_id} -> {to_account_id}",
            details={
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "total_fees": total_fees,
                "fx_gain_loss": fx_gain_loss,
            },
        )

    @staticmethod
    def transfer_rejected(
        from_account_id: str,
        to_account_id: str,
        errors: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            description=f"Transfer {from_account_id} -> {to_account_id} rejected",
            details={"errors": errors},
        )

    @staticmethod
    def reconciliation_completed(
        account_id: str,
        period: str,
        fx_gain_loss: str,
        fx_gain_loss_percentage: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account {account_id} reconciled for {period}",
            details={
                "period": period,
                "fx_gain_loss": fx_gain_loss,
                "fx_gain_loss_percentage": fx_gain_loss_percentage,
            },
        )

    @staticmethod
    def reconciliation_failed(account_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            description=f"Reconciliation failed for account {account_id}",
            error_message=error_message,
        )

    @staticmethod
    def significant_fx_change(account_id: str, percentage: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNIFICANT_FX_CHANGE,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=f"FX gain/loss of {percentage}% on account {account_id}",
            details={"percentage": percentage},
        )

    @staticmethod
    def period_frozen(period: str, frozen: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_FROZEN if frozen else AuditEventType.PERIOD_UNFROZEN,
            entity_type="period",
            entity_id=period,
            description=f"Period {period} {'frozen' if frozen else 'unfrozen'}",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_code=error_type,
            error_message=error_message,
        )
