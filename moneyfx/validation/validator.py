"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Currency codes are three letters and in the currency table
- Amount is a finite number, not negative
- Fee percentage is a fraction between 0 and 1

STAGE 2 - COMPLIANCE VALIDATION:
- No restricted (sanctioned) currency is involved

WHY TWO STAGES:
1. A restricted currency is a compliance block, not a typo; callers
   treat ComplianceError differently from ValidationError
2. Restricted codes are not in the currency table, so the compliance
   stage must not be hidden behind an "unsupported currency" error

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and ensure_valid() raises.
"""

from decimal import Decimal
from typing import Optional

from moneyfx.config import ConversionSettings
from moneyfx.exceptions import ComplianceError, ValidationError
from moneyfx.models.conversion import (
    ConversionRequest,
    TransferRequest,
    TransferValidation,
    ValidationIssue,
)
from moneyfx.models.currency import CurrencyRegistry, get_currency_registry


RESTRICTED_ISSUE = "restricted_currency"


class ConversionValidator:
    """
    Validates conversion and transfer requests.

    Stage 1: Schema validation
    Stage 2: Compliance validation
    """

    def __init__(
        self,
        registry: Optional[CurrencyRegistry] = None,
        settings: Optional[ConversionSettings] = None,
    ):
        self._registry = registry or get_currency_registry()
        self._settings = settings or ConversionSettings()

    def _check_code(self, field: str, code: Optional[str]) -> list[ValidationIssue]:
        if not code or len(code) != 3 or not code.isalpha():
            return [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{code!r} is not a three-letter currency code",
                severity="error",
            )]
        # Restricted codes are reported by the compliance stage
        if not self._registry.is_restricted(code) and not self._registry.is_supported(code):
            return [ValidationIssue(
                field=field,
                issue_type="unsupported_currency",
                message=f"Currency {code} is not supported",
                severity="error",
            )]
        return []

    def _validate_schema(
        self,
        request: ConversionRequest,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for field in ("entered_currency", "account_currency", "primary_currency"):
            issues.extend(self._check_code(field, getattr(request, field)))

        if not request.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
        elif request.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
            ))

        fee = request.fee_percentage
        if not fee.is_finite() or fee < 0 or fee >= 1:
            issues.append(ValidationIssue(
                field="fee_percentage",
                issue_type="invalid_value",
                message="Fee percentage must be a fraction between 0 and 1",
                severity="error",
            ))

        return not issues, issues

    def _validate_compliance(self, codes: dict[str, Optional[str]]) -> list[ValidationIssue]:
        """
        Stage 2: Compliance validation.

        Args:
            codes: {field_name: currency_code}
        """
        issues = []
        for field, code in codes.items():
            if code and self._registry.is_restricted(code):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=RESTRICTED_ISSUE,
                    message=f"Currency {code} is restricted and cannot be converted",
                    severity="error",
                ))
        return issues

    def validate_conversion(self, request: ConversionRequest) -> list[ValidationIssue]:
        """Run both stages and return every issue found."""
        _, issues = self._validate_schema(request)
        issues.extend(self._validate_compliance({
            "entered_currency": request.entered_currency,
            "account_currency": request.account_currency,
            "primary_currency": request.primary_currency,
        }))
        return issues

    def ensure_valid(self, request: ConversionRequest) -> None:
        """
        Raise on the first class of problem found.

        Raises:
            ComplianceError: A restricted currency is involved
            ValidationError: Any schema issue
        """
        issues = self.validate_conversion(request)
        for issue in issues:
            if issue.issue_type == RESTRICTED_ISSUE:
                raise ComplianceError(getattr(request, issue.field))
        errors = [issue.message for issue in issues if issue.severity == "error"]
        if errors:
            raise ValidationError(errors[0], errors=errors)

    def validate_transfer(self, request: TransferRequest) -> TransferValidation:
        """
        Pre-flight checks for a transfer.

        Errors block the transfer. Warnings are shown to the user but the
        transfer may go ahead.
        """
        issues = []

        restricted_labels = {
            "from_account_currency": "Source",
            "to_account_currency": "Destination",
            "primary_currency": "Primary",
            "entered_currency": "Entered",
        }
        for field, label in restricted_labels.items():
            code = getattr(request, field)
            if code and self._registry.is_restricted(code):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=RESTRICTED_ISSUE,
                    message=f"{label} currency {code} is restricted",
                    severity="error",
                ))
            elif code or field != "entered_currency":
                issues.extend(self._check_code(field, code))

        amount_ok = request.amount.is_finite() and request.amount > 0
        if not amount_ok:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Transfer amount must be greater than 0",
                severity="error",
            ))

        if request.from_account_id == request.to_account_id:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="same_account",
                message="Source and destination accounts must be different",
                severity="error",
            ))

        if request.is_cross_currency:
            issues.append(ValidationIssue(
                field="to_account_currency",
                issue_type="fx_exposure",
                message="Cross-currency transfer may be subject to exchange rate fluctuations",
                severity="warning",
            ))

        if amount_ok:
            estimated_fee = request.amount * request.fee_percentage
            if estimated_fee > request.amount * self._settings.high_fee_warning_ratio:
                issues.append(ValidationIssue(
                    field="fee_percentage",
                    issue_type="high_fee",
                    message=f"High conversion fees detected: {estimated_fee.quantize(Decimal('0.01'))}",
                    severity="warning",
                ))

        return TransferValidation(issues=issues)
