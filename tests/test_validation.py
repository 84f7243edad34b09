"""Tests for the two-stage ConversionValidator."""

import pytest
from decimal import Decimal

from moneyfx.config import ConversionSettings
from moneyfx.exceptions import ComplianceError, ValidationError
from moneyfx.models.conversion import ConversionRequest, TransferRequest
from moneyfx.validation import ConversionValidator


def conversion(**overrides):
    fields = dict(amount="10", entered_currency="USD", account_currency="EUR", primary_currency="USD")
    fields.update(overrides)
    return ConversionRequest(**fields)


def transfer(**overrides):
    fields = dict(
        amount="100",
        from_account_id="checking",
        to_account_id="savings",
        from_account_currency="USD",
        to_account_currency="USD",
        primary_currency="USD",
    )
    fields.update(overrides)
    return TransferRequest(**fields)


class TestConversionValidation:
    """Schema and compliance stages for single conversions."""

    def setup_method(self):
        self.validator = ConversionValidator(settings=ConversionSettings())

    def test_valid_request_has_no_issues(self):
        assert self.validator.validate_conversion(conversion()) == []
        self.validator.ensure_valid(conversion())

    def test_zero_amount_is_allowed(self):
        assert self.validator.validate_conversion(conversion(amount="0")) == []

    def test_schema_issues_are_collected(self):
        issues = self.validator.validate_conversion(
            conversion(amount="-1", account_currency="ABC", fee_percentage="2")
        )
        assert {i.field for i in issues} == {"amount", "account_currency", "fee_percentage"}
        assert all(i.severity == "error" for i in issues)

    def test_restricted_code_is_a_compliance_issue_only(self):
        issues = self.validator.validate_conversion(conversion(primary_currency="SYP"))
        assert [i.issue_type for i in issues] == ["restricted_currency"]

    def test_ensure_valid_raises_compliance_error(self):
        with pytest.raises(ComplianceError) as exc_info:
            self.validator.ensure_valid(conversion(account_currency="VES"))
        assert exc_info.value.currency == "VES"
        assert exc_info.value.code == "COMPLIANCE_ERROR"

    def test_ensure_valid_raises_validation_error_with_all_messages(self):
        with pytest.raises(ValidationError) as exc_info:
            self.validator.ensure_valid(conversion(amount="-1", account_currency="ABC"))
        assert len(exc_info.value.errors) == 2


class TestTransferValidation:
    """Pre-flight transfer checks."""

    def setup_method(self):
        self.validator = ConversionValidator(settings=ConversionSettings())

    def test_valid_same_currency_transfer(self):
        result = self.validator.validate_transfer(transfer())
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_restricted_currencies(self):
        result = self.validator.validate_transfer(
            transfer(from_account_currency="IRR", to_account_currency="CUP", primary_currency="MMK")
        )
        assert not result.is_valid
        assert result.has_compliance_errors
        assert "Source currency IRR is restricted" in result.errors
        assert "Destination currency CUP is restricted" in result.errors
        assert "Primary currency MMK is restricted" in result.errors

    def test_non_positive_amount(self):
        for amount in ("0", "-10"):
            result = self.validator.validate_transfer(transfer(amount=amount))
            assert "Transfer amount must be greater than 0" in result.errors

    def test_same_account(self):
        result = self.validator.validate_transfer(transfer(to_account_id="checking"))
        assert "Source and destination accounts must be different" in result.errors
        assert not result.has_compliance_errors

    def test_cross_currency_warning(self):
        result = self.validator.validate_transfer(transfer(to_account_currency="EUR"))
        assert result.is_valid
        assert result.warnings == [
            "Cross-currency transfer may be subject to exchange rate fluctuations"
        ]

    def test_high_fee_warning(self):
        result = self.validator.validate_transfer(transfer(fee_percentage="0.02"))
        assert result.is_valid
        assert result.warnings == ["High conversion fees detected: 2.00"]

    def test_fee_at_threshold_is_not_high(self):
        result = self.validator.validate_transfer(transfer(fee_percentage="0.01"))
        assert result.warnings == []

    def test_unsupported_entered_currency(self):
        result = self.validator.validate_transfer(transfer(entered_currency="ZZZ"))
        assert not result.is_valid
        assert any("ZZZ" in error for error in result.errors)

    def test_configurable_fee_threshold(self):
        validator = ConversionValidator(
            settings=ConversionSettings(high_fee_warning_ratio=Decimal("0.001"))
        )
        result = validator.validate_transfer(transfer())
        assert len(result.warnings) == 1
