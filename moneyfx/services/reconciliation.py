"""
FX Reconciliation Service

Revalues foreign-currency account balances at the current rate and keeps
the history of what currency movements did to them.

DESIGN DECISION: Values are compared in the primary currency.

    original_value  = balance * original_rate
    current_balance = balance * current_rate
    fx_gain_loss    = current_balance - original_value

so a rate rise on a positive balance is always a gain, and the percentage
is taken against |original_value|.

The service owns its two histories (reconciliation results and FX
gain/loss rows) through HistoryRepository. Accounts themselves belong to
the ledger layer; callers pass AccountBalance snapshots in.
"""

import calendar
import inspect
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from moneyfx.audit import AuditLogger
from moneyfx.clock import Clock, SystemClock
from moneyfx.config import ReconciliationFrequency, ReconciliationSettings
from moneyfx.exceptions import ReconciliationError
from moneyfx.models.audit import AuditEventBuilder
from moneyfx.models.reconciliation import (
    AccountBalance,
    AccountGainLoss,
    FXGainLoss,
    FXGainLossSummary,
    ReconciliationResult,
    ReconciliationStatus,
)
from moneyfx.services.conversion import CurrencyConversionEngine
from moneyfx.services.scheduler import PeriodicJob
from moneyfx.services.storage import HistoryRepository, InMemoryHistoryRepository


logger = structlog.get_logger(__name__)

PERCENT_QUANTUM = Decimal("0.0001")

AccountsProvider = Callable[[], Union[list[AccountBalance], Awaitable[list[AccountBalance]]]]


def add_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the last day of short months."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_reconciliation_date(moment: datetime, frequency: ReconciliationFrequency) -> datetime:
    if frequency == ReconciliationFrequency.WEEKLY:
        return moment + timedelta(days=7)
    if frequency == ReconciliationFrequency.MONTHLY:
        return add_months(moment, 1)
    if frequency == ReconciliationFrequency.QUARTERLY:
        return add_months(moment, 3)
    return moment + timedelta(days=1)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return Decimal(0)
    return (part / abs(whole) * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


class ReconciliationService:
    """
    Periodic FX revaluation of account balances.

    Usage:
        service = ReconciliationService(engine)
        results = await service.reconcile_all_accounts(accounts, "USD")
        summary = service.calculate_total_fx_gain_loss("2024-06")
    """

    def __init__(
        self,
        engine: CurrencyConversionEngine,
        settings: Optional[ReconciliationSettings] = None,
        reconciliation_history: Optional[HistoryRepository[ReconciliationResult]] = None,
        fx_gain_loss_history: Optional[HistoryRepository[FXGainLoss]] = None,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._engine = engine
        self._settings = settings or ReconciliationSettings()
        self._reconciliations = reconciliation_history or InMemoryHistoryRepository()
        self._fx_history = fx_gain_loss_history or InMemoryHistoryRepository()
        self._clock = clock or engine.clock or SystemClock()
        self._audit = audit_logger or AuditLogger()
        self._frozen_periods: set[str] = set()
        self._in_progress: set[str] = set()

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile_account(
        self,
        account_id: str,
        currency: str,
        original_balance: Decimal,
        original_rate: Decimal,
        current_rate: Decimal,
        period: str,
        primary_currency: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Revalue one account and append the result to both histories.

        Raises:
            ReconciliationError: Period is frozen (freeze_periods on),
                or a rate is not positive
        """
        if self._settings.freeze_periods and period in self._frozen_periods:
            raise ReconciliationError(f"Period {period} is frozen")
        if original_rate <= 0 or current_rate <= 0:
            raise ReconciliationError(
                f"Rates must be positive (original={original_rate}, current={current_rate})"
            )

        now = self._clock.now()
        currency = currency.upper()

        original_value = original_balance * original_rate
        current_balance = original_balance * current_rate
        fx_gain_loss = current_balance - original_value
        fx_gain_loss_percentage = _percentage(fx_gain_loss, original_value)

        realized = sum(
            (row.gain_loss for row in self._fx_history.get(account_id)
             if row.is_realized and row.period == period),
            Decimal(0),
        )

        result = ReconciliationResult(
            account_id=account_id,
            currency=currency,
            primary_currency=primary_currency.upper() if primary_currency else None,
            original_balance=original_balance,
            original_rate=original_rate,
            current_rate=current_rate,
            original_value=original_value,
            current_balance=current_balance,
            fx_gain_loss=fx_gain_loss,
            fx_gain_loss_percentage=fx_gain_loss_percentage,
            unrealized_gain_loss=fx_gain_loss,
            realized_gain_loss=realized,
            period=period,
            last_reconciliation=now,
            next_reconciliation=next_reconciliation_date(
                now, self._settings.reconciliation_frequency
            ),
        )
        self._reconciliations.append(account_id, result)
        self._fx_history.append(account_id, FXGainLoss(
            account_id=account_id,
            currency=currency,
            original_amount=original_balance,
            original_rate=original_rate,
            current_amount=current_balance,
            current_rate=current_rate,
            gain_loss=fx_gain_loss,
            gain_loss_percentage=fx_gain_loss_percentage,
            period=period,
            timestamp=now,
        ))

        logger.info(
            "account_reconciled",
            account_id=account_id,
            currency=currency,
            period=period,
            fx_gain_loss=str(fx_gain_loss),
            fx_gain_loss_percentage=str(fx_gain_loss_percentage),
        )
        return result

    async def reconcile_all_accounts(
        self,
        accounts: list[AccountBalance],
        primary_currency: str,
        period: Optional[str] = None,
    ) -> list[ReconciliationResult]:
        """
        Reconcile every account at today's rate to the primary currency.

        Accounts are processed one at a time. An account that fails (no
        rate, frozen period) is logged and skipped; the rest still run.
        """
        period = period or self.current_period()
        results = []
        for account in accounts:
            result = await self._reconcile_snapshot(account, primary_currency, period)
            if result is not None:
                results.append(result)
        return results

    async def _reconcile_snapshot(
        self,
        account: AccountBalance,
        primary_currency: str,
        period: str,
        current_rate: Optional[Decimal] = None,
    ) -> Optional[ReconciliationResult]:
        self._in_progress.add(account.id)
        try:
            if current_rate is None:
                rate = await self._engine.get_exchange_rate(account.currency, primary_currency)
                current_rate = rate.rate
            result = self.reconcile_account(
                account.id,
                account.currency,
                account.balance,
                account.original_rate,
                current_rate,
                period,
                primary_currency=primary_currency,
            )
        except Exception as e:
            logger.error(
                "account_reconciliation_failed",
                account_id=account.id,
                currency=account.currency,
                error=str(e),
            )
            await self._audit.log(AuditEventBuilder.reconciliation_failed(account.id, str(e)))
            return None
        finally:
            self._in_progress.discard(account.id)

        await self._audit.log(AuditEventBuilder.reconciliation_completed(
            account_id=account.id,
            period=period,
            fx_gain_loss=str(result.fx_gain_loss),
            fx_gain_loss_percentage=str(result.fx_gain_loss_percentage),
        ))
        if self.check_for_significant_changes(account.id):
            logger.warning(
                "significant_fx_change",
                account_id=account.id,
                percentage=str(result.fx_gain_loss_percentage),
            )
            await self._audit.log(AuditEventBuilder.significant_fx_change(
                account.id, str(result.fx_gain_loss_percentage)
            ))
        return result

    async def run_scheduled(
        self,
        accounts_provider: AccountsProvider,
        primary_currency: str,
    ) -> list[ReconciliationResult]:
        """
        One background tick: reconcile the accounts that are due.

        Does nothing when auto_reconcile is off.
        """
        if not self._settings.auto_reconcile:
            logger.debug("auto_reconcile_disabled")
            return []

        accounts = accounts_provider()
        if inspect.isawaitable(accounts):
            accounts = await accounts

        period = self.current_period()
        results = []
        for account in accounts:
            try:
                rate = await self._engine.get_exchange_rate(account.currency, primary_currency)
            except Exception as e:
                logger.error("scheduled_rate_lookup_failed", account_id=account.id, error=str(e))
                await self._audit.log(AuditEventBuilder.reconciliation_failed(account.id, str(e)))
                continue
            if not self.is_reconciliation_needed(account.id, account.currency, rate.rate):
                continue
            result = await self._reconcile_snapshot(
                account, primary_currency, period, current_rate=rate.rate
            )
            if result is not None:
                results.append(result)

        logger.info("scheduled_reconciliation_finished", reconciled=len(results))
        return results

    def schedule(
        self,
        accounts_provider: AccountsProvider,
        primary_currency: str,
    ) -> PeriodicJob:
        """Background job running run_scheduled() every run_interval_minutes."""
        return PeriodicJob(
            "reconciliation",
            lambda: self.run_scheduled(accounts_provider, primary_currency),
            self._settings.run_interval_minutes * 60,
        )

    def record_realized_gain_loss(
        self,
        account_id: str,
        currency: str,
        amount: Decimal,
        original_rate: Decimal,
        settled_rate: Decimal,
        period: Optional[str] = None,
    ) -> FXGainLoss:
        """
        Record the FX effect of a settled foreign-currency transaction.

        Realized rows for a period feed realized_gain_loss in later
        reconciliations of the same account and period.
        """
        period = period or self.current_period()
        original_value = amount * original_rate
        settled_value = amount * settled_rate
        gain_loss = settled_value - original_value
        row = FXGainLoss(
            account_id=account_id,
            currency=currency.upper(),
            original_amount=amount,
            original_rate=original_rate,
            current_amount=settled_value,
            current_rate=settled_rate,
            gain_loss=gain_loss,
            gain_loss_percentage=_percentage(gain_loss, original_value),
            period=period,
            timestamp=self._clock.now(),
            is_realized=True,
        )
        self._fx_history.append(account_id, row)
        logger.info(
            "realized_gain_loss_recorded",
            account_id=account_id,
            period=period,
            gain_loss=str(gain_loss),
        )
        return row

    # =========================================================================
    # QUERIES
    # =========================================================================

    def is_reconciliation_needed(
        self,
        account_id: str,
        currency: str,
        current_rate: Decimal,
    ) -> bool:
        """
        Due and moved enough.

        True when the account was never reconciled. Otherwise the
        configured interval must have elapsed and the rate must have moved
        by at least threshold_percentage since the last reconciliation.
        """
        last = self.get_last_reconciliation(account_id)
        if last is None:
            return True
        if last.currency != currency.upper():
            return True

        if self._clock.now() < last.next_reconciliation:
            return False

        move = _percentage(abs(current_rate - last.current_rate), last.current_rate)
        return move >= self._settings.threshold_percentage

    def get_status(self, account_id: str) -> ReconciliationStatus:
        if account_id in self._in_progress:
            return ReconciliationStatus.RECONCILING
        last = self.get_last_reconciliation(account_id)
        if last is None or self._clock.now() >= last.next_reconciliation:
            return ReconciliationStatus.NEEDS_RECONCILIATION
        return ReconciliationStatus.RECONCILED

    def get_accounts_needing_reconciliation(self) -> list[str]:
        """Previously reconciled accounts whose interval has elapsed."""
        now = self._clock.now()
        return [
            account_id
            for account_id in self._reconciliations.account_ids()
            if now >= self._reconciliations.get(account_id)[-1].next_reconciliation
        ]

    def calculate_total_fx_gain_loss(self, period: str) -> FXGainLossSummary:
        """Sum of each account's latest result for the period."""
        summary = FXGainLossSummary(period=period)
        for account_id in self._reconciliations.account_ids():
            in_period = [r for r in self._reconciliations.get(account_id) if r.period == period]
            if not in_period:
                continue
            latest = in_period[-1]
            summary.total_gain_loss += latest.fx_gain_loss
            summary.total_unrealized_gain_loss += latest.unrealized_gain_loss
            summary.total_realized_gain_loss += latest.realized_gain_loss
            summary.account_breakdown.append(AccountGainLoss(
                account_id=account_id,
                currency=latest.currency,
                gain_loss=latest.fx_gain_loss,
                gain_loss_percentage=latest.fx_gain_loss_percentage,
            ))
        return summary

    def check_for_significant_changes(self, account_id: str) -> bool:
        if not self._settings.notify_on_significant_changes:
            return False
        last = self.get_last_reconciliation(account_id)
        if last is None:
            return False
        return abs(last.fx_gain_loss_percentage) >= self._settings.significant_change_threshold

    def get_last_reconciliation(self, account_id: str) -> Optional[ReconciliationResult]:
        history = self._reconciliations.get(account_id)
        return history[-1] if history else None

    def get_reconciliation_history(self, account_id: str) -> list[ReconciliationResult]:
        return self._reconciliations.get(account_id)

    def get_fx_gain_loss_history(self, account_id: str) -> list[FXGainLoss]:
        return self._fx_history.get(account_id)

    def current_period(self) -> str:
        return self._clock.now().strftime("%Y-%m")

    # =========================================================================
    # PERIODS AND CONFIGURATION
    # =========================================================================

    async def freeze_period(self, period: str) -> None:
        """Lock a period's primary amounts. Enforced only when freeze_periods is on."""
        self._frozen_periods.add(period)
        logger.info("period_frozen", period=period)
        await self._audit.log(AuditEventBuilder.period_frozen(period, frozen=True))

    async def unfreeze_period(self, period: str) -> None:
        self._frozen_periods.discard(period)
        logger.info("period_unfrozen", period=period)
        await self._audit.log(AuditEventBuilder.period_frozen(period, frozen=False))

    def is_period_frozen(self, period: str) -> bool:
        return period in self._frozen_periods

    def update_config(self, **changes: Any) -> ReconciliationSettings:
        """
        Replace individual settings, e.g. update_config(threshold_percentage=Decimal("0.5")).

        Raises:
            ValueError: Unknown setting name
        """
        unknown = set(changes) - set(ReconciliationSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown reconciliation settings: {sorted(unknown)}")
        self._settings = ReconciliationSettings(**{**self._settings.model_dump(), **changes})
        logger.info("reconciliation_config_updated", changes=sorted(changes))
        return self.get_config()

    def get_config(self) -> ReconciliationSettings:
        return self._settings.model_copy()

    def clear_history(self) -> None:
        self._reconciliations.clear()
        self._fx_history.clear()
