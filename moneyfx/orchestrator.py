"""
Main Orchestrator for moneyfx

This module ties together all the components:
1. Rate store + daily fetcher (providers -> rate table)
2. Conversion engine (rate table -> three-way amounts)
3. Transfer and reconciliation services built on the engine

DESIGN DECISION: Every service takes its collaborators in the
constructor. This factory is the one place that decides which concrete
storage, clock and audit backend a running application uses; tests build
the same graph by hand with in-memory pieces.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from moneyfx.audit import AuditLogger
from moneyfx.clock import Clock, SystemClock
from moneyfx.config import get_settings
from moneyfx.models.currency import CurrencyRegistry, get_currency_registry
from moneyfx.services.conversion import CurrencyConversionEngine
from moneyfx.services.rates import DailyRateFetcher, RateProvider, RateStore
from moneyfx.services.reconciliation import AccountsProvider, ReconciliationService
from moneyfx.services.scheduler import PeriodicJob
from moneyfx.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRateStorage,
    InMemoryRateStorage,
    RateStorageInterface,
)
from moneyfx.services.transfer import TransferService
from moneyfx.validation import ConversionValidator


logger = structlog.get_logger(__name__)


@dataclass
class FXComponents:
    """Everything a host application needs, wired together."""

    clock: Clock
    registry: CurrencyRegistry
    audit_logger: AuditLogger
    rate_store: RateStore
    fetcher: DailyRateFetcher
    engine: CurrencyConversionEngine
    transfer_service: TransferService
    reconciliation_service: ReconciliationService
    primary_currency: str = "USD"
    sheets_client: Optional[GoogleSheetsClient] = None

    @property
    def rate_refresh_job(self) -> PeriodicJob:
        return self.fetcher.job

    def reconciliation_job(self, accounts_provider: AccountsProvider) -> PeriodicJob:
        """Background reconciliation in the configured primary currency."""
        return self.reconciliation_service.schedule(accounts_provider, self.primary_currency)


def create_app_components(
    use_sheets_storage: bool = False,
    clock: Optional[Clock] = None,
    providers: Optional[list[RateProvider]] = None,
) -> FXComponents:
    """
    Factory function to create all application components.

    Args:
        use_sheets_storage: Persist rates and audit events to Google Sheets.
                    Falls back to in-memory storage if Sheets is not
                    configured.
        clock: Defaults to the system clock
        providers: Override the upstream rate providers (tests)

    Returns:
        FXComponents bundle
    """
    settings = get_settings()
    clock = clock or SystemClock()
    registry = get_currency_registry()

    sheets_client = None
    rate_storage: RateStorageInterface
    if use_sheets_storage:
        try:
            sheets_client = GoogleSheetsClient()
            rate_storage = GoogleSheetsRateStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("sheets_storage_unavailable", error=str(e))
            sheets_client = None
            rate_storage = InMemoryRateStorage()
            audit_logger = AuditLogger()
    else:
        rate_storage = InMemoryRateStorage()
        audit_logger = AuditLogger()

    conversion_settings = settings.conversion
    rate_store = RateStore(rate_storage, clock)
    fetcher = DailyRateFetcher(
        rate_store,
        providers=providers,
        settings=settings.rates,
        audit_logger=audit_logger,
    )
    validator = ConversionValidator(registry, conversion_settings)
    engine = CurrencyConversionEngine(
        rate_store,
        registry=registry,
        validator=validator,
        settings=conversion_settings,
        audit_logger=audit_logger,
        clock=clock,
    )
    transfer_service = TransferService(
        engine,
        validator=validator,
        audit_logger=audit_logger,
        clock=clock,
    )
    reconciliation_service = ReconciliationService(
        engine,
        settings=settings.reconciliation,
        clock=clock,
        audit_logger=audit_logger,
    )

    return FXComponents(
        clock=clock,
        registry=registry,
        audit_logger=audit_logger,
        rate_store=rate_store,
        fetcher=fetcher,
        engine=engine,
        transfer_service=transfer_service,
        reconciliation_service=reconciliation_service,
        primary_currency=settings.app.primary_currency,
        sheets_client=sheets_client,
    )
