"""
Currency Conversion Engine

Converts an amount entered in one currency into the account currency and
the user's primary (reporting) currency.

DESIGN DECISION: Classify first, then look up only what the case needs.

    case                   entered/account/primary   rate lookups
    all_same               X / X / X                 0
    amount_account_same    X / X / Z                 1  (X->Z)
    amount_primary_same    X / Y / X                 1  (X->Y)
    account_primary_same   X / Y / Y                 1  (X->Y)
    all_different          X / Y / Z                 2  (X->Y, X->Z)

Amounts are rounded half-up to the target currency's minor unit. Fees are
charged in the entered currency.

Every completed or failed conversion is audited under its own audit_id.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from moneyfx.audit import AuditLogger, create_correlation_id
from moneyfx.clock import Clock
from moneyfx.config import ConversionSettings
from moneyfx.exceptions import MoneyFXError, RateUnavailableError
from moneyfx.models.audit import AuditEventBuilder
from moneyfx.models.conversion import ConversionCase, ConversionRequest, ConversionResult
from moneyfx.models.currency import CurrencyRegistry, get_currency_registry
from moneyfx.models.rates import SAME_CURRENCY_SOURCE, ExchangeRate
from moneyfx.services.rates.store import RateStore
from moneyfx.validation import ConversionValidator


logger = structlog.get_logger(__name__)


class CurrencyConversionEngine:
    """
    Stateless apart from its collaborators; safe to share.

    Usage:
        engine = CurrencyConversionEngine(store)
        result = await engine.convert_amount(
            Decimal("100"), "USD", account_currency="USD", primary_currency="INR"
        )
        result.primary_amount  # Decimal('8800.00')
    """

    def __init__(
        self,
        store: RateStore,
        registry: Optional[CurrencyRegistry] = None,
        validator: Optional[ConversionValidator] = None,
        settings: Optional[ConversionSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._registry = registry or get_currency_registry()
        self._settings = settings or ConversionSettings()
        self._validator = validator or ConversionValidator(self._registry, self._settings)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or store.clock

    @property
    def registry(self) -> CurrencyRegistry:
        return self._registry

    @property
    def clock(self) -> Clock:
        return self._clock

    @staticmethod
    def classify(entered: str, account: str, primary: str) -> ConversionCase:
        """Which of the three currencies coincide."""
        entered, account, primary = entered.upper(), account.upper(), primary.upper()
        if entered == account == primary:
            return ConversionCase.ALL_SAME
        if entered == account:
            return ConversionCase.AMOUNT_ACCOUNT_SAME
        if entered == primary:
            return ConversionCase.AMOUNT_PRIMARY_SAME
        if account == primary:
            return ConversionCase.ACCOUNT_PRIMARY_SAME
        return ConversionCase.ALL_DIFFERENT

    @staticmethod
    def required_pairs(
        case: ConversionCase,
        entered: str,
        account: str,
        primary: str,
    ) -> list[tuple[str, str]]:
        """The rate pairs a case needs, and nothing more."""
        case = case.canonical
        if case == ConversionCase.ALL_SAME:
            return []
        if case == ConversionCase.AMOUNT_ACCOUNT_SAME:
            return [(entered, primary)]
        if case in (ConversionCase.AMOUNT_PRIMARY_SAME, ConversionCase.ACCOUNT_PRIMARY_SAME):
            return [(entered, account)]
        return [(entered, account), (entered, primary)]

    async def get_exchange_rate(
        self,
        from_currency: str,
        to_currency: str,
        on_date: Optional[date] = None,
    ) -> ExchangeRate:
        """
        Rate for a pair, fresh or stale.

        Raises:
            RateUnavailableError: Nothing stored links the two currencies
        """
        on_date = on_date or self._clock.today()
        rate = await self._store.find_rate(from_currency, to_currency, on_date)
        if rate is None:
            raise RateUnavailableError(from_currency.upper(), to_currency.upper(), on_date)
        return rate

    async def convert(self, request: ConversionRequest) -> ConversionResult:
        """
        Convert one amount.

        Raises:
            ValidationError: Malformed codes, amount or fee
            ComplianceError: A restricted currency is involved
            RateUnavailableError: A required rate is missing
        """
        audit_id = create_correlation_id()
        try:
            result = await self._convert(request, audit_id)
        except MoneyFXError as e:
            logger.warning(
                "conversion_failed",
                audit_id=str(audit_id),
                error_code=e.code,
                error=str(e),
            )
            await self._audit.log(AuditEventBuilder.conversion_failed(
                audit_id=audit_id,
                error_type=e.code,
                error_message=str(e),
                details={
                    "entered_currency": request.entered_currency,
                    "account_currency": request.account_currency,
                    "primary_currency": request.primary_currency,
                    "audit_context": request.audit_context,
                },
            ))
            raise

        await self._audit.log(AuditEventBuilder.conversion_completed(
            audit_id=audit_id,
            conversion_case=result.conversion_case.value,
            entered=self._registry.format_amount(result.entered_amount, result.entered_currency),
            account=self._registry.format_amount(result.account_amount, result.account_currency),
            primary=self._registry.format_amount(result.primary_amount, result.primary_currency),
            source=result.conversion_source,
            is_stale=result.is_stale,
        ))
        return result

    async def _convert(self, request: ConversionRequest, audit_id: UUID) -> ConversionResult:
        self._validator.ensure_valid(request)

        entered = request.entered_currency
        account = request.account_currency
        primary = request.primary_currency
        amount = request.amount
        today = self._clock.today()

        case = self.classify(entered, account, primary)

        account_record: Optional[ExchangeRate] = None
        primary_record: Optional[ExchangeRate] = None
        if case == ConversionCase.AMOUNT_ACCOUNT_SAME:
            primary_record = await self.get_exchange_rate(entered, primary, today)
        elif case in (ConversionCase.AMOUNT_PRIMARY_SAME, ConversionCase.ACCOUNT_PRIMARY_SAME):
            account_record = await self.get_exchange_rate(entered, account, today)
        elif case == ConversionCase.ALL_DIFFERENT:
            account_record = await self.get_exchange_rate(entered, account, today)
            primary_record = await self.get_exchange_rate(entered, primary, today)

        account_rate = account_record.rate if account_record else Decimal(1)
        if case == ConversionCase.ACCOUNT_PRIMARY_SAME:
            primary_rate = account_rate
        else:
            primary_rate = primary_record.rate if primary_record else Decimal(1)

        account_amount = self._registry.quantize(amount * account_rate, account)
        primary_amount = self._registry.quantize(amount * primary_rate, primary)

        if request.include_fees:
            fee = self._registry.quantize(amount * request.fee_percentage, entered)
        else:
            fee = self._registry.quantize(Decimal(0), entered)
        total_cost = self._registry.quantize(amount, entered) + fee

        if case == ConversionCase.AMOUNT_ACCOUNT_SAME:
            exchange_rate = primary_rate
        else:
            exchange_rate = account_rate

        records = [r for r in (account_record, primary_record) if r is not None]
        source = records[0].source if records else SAME_CURRENCY_SOURCE

        result = ConversionResult(
            entered_amount=self._registry.quantize(amount, entered),
            entered_currency=entered,
            entered_symbol=self._registry.symbol(entered),
            account_amount=account_amount,
            account_currency=account,
            account_symbol=self._registry.symbol(account),
            primary_amount=primary_amount,
            primary_currency=primary,
            primary_symbol=self._registry.symbol(primary),
            exchange_rate=exchange_rate,
            conversion_source=source,
            conversion_timestamp=self._clock.now(),
            conversion_case=case,
            rate_lookups=len(records),
            is_stale=any(r.is_stale for r in records),
            conversion_fee=fee,
            total_cost=total_cost,
            rate_record=account_record,
            primary_rate_record=primary_record,
            audit_id=audit_id,
        )

        logger.info(
            "conversion_completed",
            audit_id=str(audit_id),
            conversion_case=case.value,
            entered_currency=entered,
            account_currency=account,
            primary_currency=primary,
            source=source,
            is_stale=result.is_stale,
        )
        return result

    async def convert_amount(
        self,
        amount: Decimal,
        entered_currency: str,
        account_currency: str,
        primary_currency: str,
        include_fees: bool = False,
        fee_percentage: Optional[Decimal] = None,
        audit_context: str = "manual_conversion",
    ) -> ConversionResult:
        """Keyword convenience around convert()."""
        if fee_percentage is None:
            fee_percentage = self._settings.default_fee_percentage
        request = ConversionRequest(
            amount=amount,
            entered_currency=entered_currency,
            account_currency=account_currency,
            primary_currency=primary_currency,
            include_fees=include_fees,
            fee_percentage=fee_percentage,
            audit_context=audit_context,
        )
        return await self.convert(request)
