"""
Transfer Service

A transfer is one logical money movement between two accounts, booked as
an expense leg on the source account and an income leg on the
destination account.

DESIGN DECISION: All-or-nothing.
- Validation errors block the transfer before any conversion is attempted
- A conversion error on either leg fails the whole transfer
- Nothing is persisted here; the ledger layer saves both legs together

fx_gain_loss is the difference between the two legs' primary-currency
values: what converting through two different rates did to the money.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from moneyfx.audit import AuditLogger, create_correlation_id
from moneyfx.clock import Clock
from moneyfx.exceptions import ComplianceError, ValidationError
from moneyfx.models.audit import AuditEventBuilder
from moneyfx.models.conversion import (
    ConversionCase,
    ConversionResult,
    TransactionType,
    TransferAuditTrail,
    TransferRequest,
    TransferResult,
    TransferStatistics,
    TransferTransaction,
    TransferValidation,
)
from moneyfx.models.rates import SAME_CURRENCY_SOURCE, ExchangeRate
from moneyfx.services.conversion import CurrencyConversionEngine
from moneyfx.validation import ConversionValidator
from moneyfx.validation.validator import RESTRICTED_ISSUE


logger = structlog.get_logger(__name__)


class TransferService:
    """
    Builds matched transfer legs through the conversion engine.

    Keeps running statistics for the lifetime of the instance.
    """

    def __init__(
        self,
        engine: CurrencyConversionEngine,
        validator: Optional[ConversionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._engine = engine
        self._validator = validator or ConversionValidator(engine.registry)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or engine.clock
        self._stats = TransferStatistics()

    async def validate_transfer(self, request: TransferRequest) -> TransferValidation:
        return self._validator.validate_transfer(request)

    async def _ensure_valid(self, request: TransferRequest) -> None:
        validation = self._validator.validate_transfer(request)
        if validation.is_valid:
            return

        logger.warning(
            "transfer_rejected",
            from_account_id=request.from_account_id,
            to_account_id=request.to_account_id,
            errors=validation.errors,
        )
        await self._audit.log(AuditEventBuilder.transfer_rejected(
            request.from_account_id,
            request.to_account_id,
            validation.errors,
        ))

        for issue in validation.issues:
            if issue.issue_type == RESTRICTED_ISSUE:
                raise ComplianceError(getattr(request, issue.field), issue.message)
        raise ValidationError(validation.errors[0], errors=validation.errors)

    async def create_transfer(self, request: TransferRequest) -> TransferResult:
        """
        Convert both legs and pair them.

        Raises:
            ComplianceError: A restricted currency is involved
            ValidationError: Bad amount, same account, unsupported currency
            ConversionError: A leg could not be converted
        """
        await self._ensure_valid(request)

        transfer_id = create_correlation_id()
        entered = request.source_currency

        source = await self._engine.convert_amount(
            request.amount,
            entered_currency=entered,
            account_currency=request.from_account_currency,
            primary_currency=request.primary_currency,
            include_fees=request.include_fees,
            fee_percentage=request.fee_percentage,
            audit_context=f"{request.audit_context}_source",
        )
        destination = await self._engine.convert_amount(
            request.amount,
            entered_currency=entered,
            account_currency=request.to_account_currency,
            primary_currency=request.primary_currency,
            include_fees=request.include_fees,
            fee_percentage=request.fee_percentage,
            audit_context=f"{request.audit_context}_destination",
        )

        registry = self._engine.registry
        fx_gain_loss = registry.quantize(
            destination.primary_amount - source.primary_amount,
            request.primary_currency,
        )
        total_fees = source.conversion_fee + destination.conversion_fee

        result = self._build_result(
            transfer_id=transfer_id,
            from_account_id=request.from_account_id,
            to_account_id=request.to_account_id,
            description=request.description,
            source=source,
            destination=destination,
            total_fees=total_fees,
            fx_gain_loss=fx_gain_loss,
        )
        await self._record(result, entered, request.primary_currency, request.is_cross_currency)
        return result

    async def create_same_currency_transfer(
        self,
        amount: Decimal,
        from_account_id: str,
        to_account_id: str,
        currency: str,
        primary_currency: str,
        description: str = "",
    ) -> TransferResult:
        """
        Transfer between two accounts in the same currency.

        No rate lookup: rate 1, no fee, no FX effect. The primary amount is
        the transferred amount as entered.
        """
        request = TransferRequest(
            amount=amount,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            from_account_currency=currency,
            to_account_currency=currency,
            primary_currency=primary_currency,
            description=description,
            audit_context="same_currency_transfer",
        )
        await self._ensure_valid(request)

        registry = self._engine.registry
        currency = request.from_account_currency
        primary_currency = request.primary_currency
        value = registry.quantize(request.amount, currency)
        now = self._clock.now()
        audit_id = create_correlation_id()

        conversion = ConversionResult(
            entered_amount=value,
            entered_currency=currency,
            entered_symbol=registry.symbol(currency),
            account_amount=value,
            account_currency=currency,
            account_symbol=registry.symbol(currency),
            primary_amount=value,
            primary_currency=primary_currency,
            primary_symbol=registry.symbol(primary_currency),
            exchange_rate=Decimal(1),
            conversion_source=SAME_CURRENCY_SOURCE,
            conversion_timestamp=now,
            conversion_case=ConversionCase.ALL_SAME,
            rate_lookups=0,
            conversion_fee=registry.quantize(Decimal(0), currency),
            total_cost=value,
            rate_record=ExchangeRate.identity(currency, now.date()),
            audit_id=audit_id,
        )

        result = self._build_result(
            transfer_id=create_correlation_id(),
            from_account_id=request.from_account_id,
            to_account_id=request.to_account_id,
            description=request.description,
            source=conversion,
            destination=conversion,
            total_fees=Decimal(0),
            fx_gain_loss=Decimal(0),
        )
        await self._record(result, currency, primary_currency, cross_currency=False)
        return result

    def get_transfer_statistics(self) -> TransferStatistics:
        return self._stats.model_copy(deep=True)

    def _build_result(
        self,
        transfer_id: UUID,
        from_account_id: str,
        to_account_id: str,
        description: str,
        source: ConversionResult,
        destination: ConversionResult,
        total_fees: Decimal,
        fx_gain_loss: Decimal,
    ) -> TransferResult:
        source_tx = TransferTransaction(
            id=f"{transfer_id}_source",
            type=TransactionType.EXPENSE,
            amount=source.account_amount,
            currency=source.account_currency,
            symbol=source.account_symbol,
            account_id=from_account_id,
            description=f"Transfer to {description or to_account_id}",
            conversion=source,
        )
        destination_tx = TransferTransaction(
            id=f"{transfer_id}_destination",
            type=TransactionType.INCOME,
            amount=destination.account_amount,
            currency=destination.account_currency,
            symbol=destination.account_symbol,
            account_id=to_account_id,
            description=f"Transfer from {description or from_account_id}",
            conversion=destination,
        )
        return TransferResult(
            transfer_id=transfer_id,
            transfer_timestamp=self._clock.now(),
            source_transaction=source_tx,
            destination_transaction=destination_tx,
            total_fees=total_fees,
            fx_gain_loss=fx_gain_loss,
            audit_trail=TransferAuditTrail(
                source_audit_id=source.audit_id,
                destination_audit_id=destination.audit_id,
                transfer_audit_id=transfer_id,
            ),
        )

    async def _record(
        self,
        result: TransferResult,
        fee_currency: str,
        primary_currency: str,
        cross_currency: bool,
    ) -> None:
        stats = self._stats
        stats.total_transfers += 1
        if cross_currency:
            stats.cross_currency_transfers += 1
        else:
            stats.same_currency_transfers += 1
        stats.total_fees[fee_currency] = (
            stats.total_fees.get(fee_currency, Decimal(0)) + result.total_fees
        )
        stats.total_fx_gain_loss[primary_currency] = (
            stats.total_fx_gain_loss.get(primary_currency, Decimal(0)) + result.fx_gain_loss
        )

        logger.info(
            "transfer_created",
            transfer_id=str(result.transfer_id),
            from_account_id=result.source_transaction.account_id,
            to_account_id=result.destination_transaction.account_id,
            total_fees=str(result.total_fees),
            fx_gain_loss=str(result.fx_gain_loss),
        )
        await self._audit.log(AuditEventBuilder.transfer_created(
            transfer_id=result.transfer_id,
            from_account_id=result.source_transaction.account_id,
            to_account_id=result.destination_transaction.account_id,
            total_fees=str(result.total_fees),
            fx_gain_loss=str(result.fx_gain_loss),
        ))
