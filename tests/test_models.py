"""
Tests for moneyfx models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for services (with in-memory storage)
3. No real API calls in tests (HTTP goes through httpx.MockTransport)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from moneyfx.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from moneyfx.models.conversion import (
    ConversionCase,
    ConversionRequest,
    ConversionResult,
    TransferRequest,
    TransferValidation,
    ValidationIssue,
)
from moneyfx.models.rates import SAME_CURRENCY_SOURCE, ExchangeRate, RateStatistics, quantize_rate
from moneyfx.models.reconciliation import AccountBalance


class TestExchangeRate:
    """Tests for the ExchangeRate model."""

    def test_rate_quantized_to_six_places(self):
        """Provider numbers are stored at 6 dp, half-up."""
        rate = ExchangeRate(
            base_currency="usd",
            target_currency="eur",
            rate=0.92345678,
            fx_date=date(2024, 6, 15),
            source="fixer-io",
        )
        assert rate.rate == Decimal("0.923457")
        assert rate.pair == ("USD", "EUR")

    def test_float_goes_through_str(self):
        """0.1 becomes exactly Decimal('0.1'), not its binary expansion."""
        assert quantize_rate(0.1) == Decimal("0.100000")

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            ExchangeRate(
                base_currency="USD",
                target_currency="EUR",
                rate=0,
                fx_date=date(2024, 6, 15),
                source="x",
            )

    def test_rejects_non_numeric_rate(self):
        with pytest.raises(ValueError):
            ExchangeRate(
                base_currency="USD",
                target_currency="EUR",
                rate="abc",
                fx_date=date(2024, 6, 15),
                source="x",
            )

    def test_rejects_infinite_and_bool(self):
        with pytest.raises(ValueError):
            quantize_rate(float("inf"))
        with pytest.raises(ValueError):
            quantize_rate(True)

    def test_rate_is_immutable(self):
        rate = ExchangeRate(
            base_currency="USD", target_currency="EUR", rate=1, fx_date=date(2024, 6, 15), source="x"
        )
        with pytest.raises(Exception):
            rate.rate = Decimal("2")

    def test_inverted(self):
        rate = ExchangeRate(
            base_currency="USD",
            target_currency="INR",
            rate=88,
            fx_date=date(2024, 6, 15),
            source="exchangerate-host",
        )
        inverse = rate.inverted()
        assert inverse.pair == ("INR", "USD")
        assert inverse.rate == Decimal(1) / Decimal("88")
        assert inverse.rate.quantize(Decimal("0.000001")) == Decimal("0.011364")
        assert inverse.source == "exchangerate-host:inverse"
        assert inverse.fx_date == rate.fx_date

    def test_as_stale_copies_to_new_date(self):
        rate = ExchangeRate(
            base_currency="USD", target_currency="EUR", rate="0.92",
            fx_date=date(2024, 6, 14), source="fixer-io",
        )
        stale = rate.as_stale(date(2024, 6, 15))
        assert stale.is_stale is True
        assert stale.fx_date == date(2024, 6, 15)
        assert stale.rate == rate.rate
        assert stale.source == "fixer-io"
        assert rate.is_stale is False

    def test_identity(self):
        rate = ExchangeRate.identity("EUR", date(2024, 6, 15))
        assert rate.rate == Decimal("1.000000")
        assert rate.source == SAME_CURRENCY_SOURCE

    def test_statistics_flag(self):
        stats = RateStatistics(fx_date=date(2024, 6, 15), total_rates=3, stale_rates=1)
        assert stats.has_stale_rates is True
        assert RateStatistics(fx_date=date(2024, 6, 15)).has_stale_rates is False


class TestConversionModels:
    """Tests for conversion request/result models."""

    def test_request_normalizes_codes(self):
        request = ConversionRequest(
            amount=100,
            entered_currency=" usd ",
            account_currency="eur",
            primary_currency="Inr",
        )
        assert request.entered_currency == "USD"
        assert request.account_currency == "EUR"
        assert request.primary_currency == "INR"
        assert request.fee_percentage == Decimal("0.0025")
        assert request.include_fees is False
        assert request.audit_context == "manual_conversion"

    def test_request_float_amount_via_str(self):
        request = ConversionRequest(
            amount=19.99, entered_currency="USD", account_currency="USD", primary_currency="USD"
        )
        assert request.amount == Decimal("19.99")

    def test_case_alias_is_canonicalized(self):
        assert ConversionCase.AMOUNT_DIFFERENT_OTHERS_SAME.canonical is ConversionCase.ACCOUNT_PRIMARY_SAME
        assert ConversionCase.ALL_DIFFERENT.canonical is ConversionCase.ALL_DIFFERENT

    def test_display_text(self):
        record = ExchangeRate(
            base_currency="USD", target_currency="INR", rate=88,
            fx_date=date(2024, 6, 15), source="exchangerate-host", is_stale=True,
        )
        result = ConversionResult(
            entered_amount=Decimal("100.00"),
            entered_currency="USD",
            entered_symbol="$",
            account_amount=Decimal("8800.00"),
            account_currency="INR",
            account_symbol="₹",
            primary_amount=Decimal("8800.00"),
            primary_currency="INR",
            primary_symbol="₹",
            exchange_rate=Decimal("88"),
            conversion_source="exchangerate-host",
            conversion_timestamp=datetime(2024, 6, 15, 9),
            conversion_case=ConversionCase.ACCOUNT_PRIMARY_SAME,
            total_cost=Decimal("100.00"),
            rate_record=record,
        )
        assert result.display_text == (
            "Converted using rate 88.000000 (exchangerate-host) on 2024-06-15 (stale)"
        )


class TestTransferModels:
    """Tests for transfer request and validation models."""

    def test_source_currency_defaults_to_from_account(self):
        request = TransferRequest(
            amount=10,
            from_account_id="a",
            to_account_id="b",
            from_account_currency="usd",
            to_account_currency="eur",
            primary_currency="usd",
        )
        assert request.source_currency == "USD"
        assert request.is_cross_currency is True

    def test_validation_partitions_issues(self):
        validation = TransferValidation(issues=[
            ValidationIssue(field="amount", issue_type="invalid_value", message="bad", severity="error"),
            ValidationIssue(field="x", issue_type="fx_exposure", message="careful", severity="warning"),
        ])
        assert validation.is_valid is False
        assert validation.errors == ["bad"]
        assert validation.warnings == ["careful"]
        assert validation.has_compliance_errors is False

    def test_warnings_only_is_valid(self):
        validation = TransferValidation(issues=[
            ValidationIssue(field="x", issue_type="fx_exposure", message="careful", severity="warning"),
        ])
        assert validation.is_valid is True


class TestAccountBalance:
    """Tests for the caller-supplied account snapshot."""

    def test_uppercases_currency(self):
        account = AccountBalance(id="acc-1", currency="eur", balance=Decimal("10"), original_rate=Decimal("1.1"))
        assert account.currency == "EUR"

    def test_rejects_zero_rate(self):
        with pytest.raises(ValueError):
            AccountBalance(id="acc-1", currency="EUR", balance=Decimal("10"), original_rate=Decimal("0"))


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.RATES_FETCHED,
            entity_type="rates",
            description="Fetched rates",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test converting audit event to sheets row."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.CONVERSION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Conversion failed",
            details={"pair": "USD/INR"},
            error_code="RATE_UNAVAILABLE",
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "conversion_failed"
        assert row[6] == str(correlation_id)
        assert '"pair": "USD/INR"' in row[8]
        assert row[9] == "RATE_UNAVAILABLE"

    def test_builder_provider_failed(self):
        event = AuditEventBuilder.provider_failed("fixer-io", "HTTP 500")
        assert event.event_type == AuditEventType.PROVIDER_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "fixer-io"
        assert event.error_message == "HTTP 500"

    def test_builder_stale_conversion_is_warning(self):
        audit_id = uuid4()
        event = AuditEventBuilder.conversion_completed(
            audit_id=audit_id,
            conversion_case="all_different",
            entered="$10.00",
            account="€9.20",
            primary="₹880.00",
            source="exchangerate-host",
            is_stale=True,
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.correlation_id == audit_id
        assert event.details["conversion_case"] == "all_different"

    def test_builder_period_frozen(self):
        assert AuditEventBuilder.period_frozen("2024-06", True).event_type == AuditEventType.PERIOD_FROZEN
        assert AuditEventBuilder.period_frozen("2024-06", False).event_type == AuditEventType.PERIOD_UNFROZEN
