"""Tests for TransferService."""

import pytest
from decimal import Decimal

from moneyfx.config import ConversionSettings
from moneyfx.exceptions import ComplianceError, RateUnavailableError, ValidationError
from moneyfx.models.audit import AuditEventType
from moneyfx.models.conversion import TransactionType, TransferRequest
from moneyfx.services.conversion import CurrencyConversionEngine
from moneyfx.services.transfer import TransferService


@pytest.fixture
def transfer_service(engine, audit_logger, clock):
    return TransferService(engine, audit_logger=audit_logger, clock=clock)


def request(**overrides):
    fields = dict(
        amount=Decimal("100"),
        from_account_id="checking",
        to_account_id="euro-savings",
        from_account_currency="USD",
        to_account_currency="EUR",
        primary_currency="INR",
        description="holiday fund",
    )
    fields.update(overrides)
    return TransferRequest(**fields)


class TestCreateTransfer:
    """Tests for cross-currency transfers."""

    @pytest.mark.asyncio
    async def test_legs(self, transfer_service):
        result = await transfer_service.create_transfer(request())

        source = result.source_transaction
        destination = result.destination_transaction
        assert source.type == TransactionType.EXPENSE
        assert source.account_id == "checking"
        assert source.amount == Decimal("100.00")
        assert source.currency == "USD"
        assert source.description == "Transfer to holiday fund"
        assert destination.type == TransactionType.INCOME
        assert destination.account_id == "euro-savings"
        assert destination.amount == Decimal("92.00")
        assert destination.currency == "EUR"
        assert destination.symbol == "€"
        assert destination.description == "Transfer from holiday fund"
        assert source.id == f"{result.transfer_id}_source"
        assert destination.id == f"{result.transfer_id}_destination"

    @pytest.mark.asyncio
    async def test_fx_gain_loss_is_primary_difference(self, transfer_service):
        result = await transfer_service.create_transfer(request())
        expected = result.destination_leg.primary_amount - result.source_leg.primary_amount
        assert result.fx_gain_loss == expected
        assert result.source_leg.primary_amount == Decimal("8800.00")
        assert result.destination_leg.primary_amount == Decimal("8800.00")
        assert result.fx_gain_loss == Decimal("0")

    @pytest.mark.asyncio
    async def test_total_fees_sum_both_legs(self, transfer_service):
        result = await transfer_service.create_transfer(request(include_fees=True))
        assert result.source_leg.conversion_fee == Decimal("0.25")
        assert result.destination_leg.conversion_fee == Decimal("0.25")
        assert result.total_fees == Decimal("0.50")

    @pytest.mark.asyncio
    async def test_entered_currency_override(self, transfer_service):
        result = await transfer_service.create_transfer(request(entered_currency="EUR"))
        assert result.source_leg.entered_currency == "EUR"
        # EUR->USD is the inverse of USD->EUR (1 / 0.92 = 1.08695...)
        assert result.source_transaction.amount == Decimal("108.70")
        assert result.destination_transaction.amount == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_audit_trail(self, transfer_service, audit_storage):
        result = await transfer_service.create_transfer(request())

        trail = result.audit_trail
        assert trail.source_audit_id == result.source_leg.audit_id
        assert trail.destination_audit_id == result.destination_leg.audit_id
        assert trail.transfer_audit_id == result.transfer_id
        created = [
            e for e in audit_storage.events if e.event_type == AuditEventType.TRANSFER_CREATED
        ]
        assert len(created) == 1
        assert created[0].correlation_id == result.transfer_id


class TestTransferFailures:
    """Validation blocks before conversion; conversion errors propagate."""

    @pytest.mark.asyncio
    async def test_same_account_blocked_before_conversion(self, transfer_service, audit_storage):
        with pytest.raises(ValidationError, match="different"):
            await transfer_service.create_transfer(request(to_account_id="checking"))

        types = [e.event_type for e in audit_storage.events]
        assert types == [AuditEventType.TRANSFER_REJECTED]

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, transfer_service):
        with pytest.raises(ValidationError):
            await transfer_service.create_transfer(request(amount=Decimal("0")))

    @pytest.mark.asyncio
    async def test_restricted_currency(self, transfer_service):
        with pytest.raises(ComplianceError) as exc_info:
            await transfer_service.create_transfer(request(to_account_currency="AFN"))
        assert exc_info.value.currency == "AFN"

    @pytest.mark.asyncio
    async def test_missing_rate_fails_whole_transfer(self, transfer_service):
        with pytest.raises(RateUnavailableError):
            await transfer_service.create_transfer(request(to_account_currency="CHF"))
        assert transfer_service.get_transfer_statistics().total_transfers == 0

    @pytest.mark.asyncio
    async def test_validate_transfer(self, transfer_service):
        validation = await transfer_service.validate_transfer(request())
        assert validation.is_valid
        assert len(validation.warnings) == 1


class TestSameCurrencyTransfer:
    """Tests for the no-conversion shortcut."""

    @pytest.mark.asyncio
    async def test_fifty_usd(self, empty_store, audit_logger, clock):
        """Needs no rates at all."""
        engine = CurrencyConversionEngine(
            empty_store, settings=ConversionSettings(), audit_logger=audit_logger, clock=clock
        )
        service = TransferService(engine, audit_logger=audit_logger, clock=clock)

        result = await service.create_same_currency_transfer(
            Decimal("50"), "wallet", "checking", "USD", "USD", "top up"
        )

        assert result.fx_gain_loss == Decimal(0)
        assert result.total_fees == Decimal(0)
        assert result.source_leg.exchange_rate == Decimal(1)
        assert result.source_leg.rate_lookups == 0
        assert result.source_transaction.amount == Decimal("50.00")
        assert result.destination_transaction.amount == Decimal("50.00")
        assert result.source_transaction.type == TransactionType.EXPENSE
        assert result.destination_transaction.type == TransactionType.INCOME

    @pytest.mark.asyncio
    async def test_same_currency_validation(self, transfer_service):
        with pytest.raises(ValidationError):
            await transfer_service.create_same_currency_transfer(
                Decimal("50"), "wallet", "wallet", "USD", "USD"
            )
        with pytest.raises(ComplianceError):
            await transfer_service.create_same_currency_transfer(
                Decimal("50"), "wallet", "checking", "SYP", "USD"
            )


class TestTransferStatistics:
    """Tests for the running counters."""

    @pytest.mark.asyncio
    async def test_counters(self, transfer_service):
        await transfer_service.create_transfer(request(include_fees=True))
        await transfer_service.create_transfer(request(to_account_currency="USD", include_fees=True))
        await transfer_service.create_same_currency_transfer(
            Decimal("5"), "wallet", "checking", "USD", "INR"
        )

        stats = transfer_service.get_transfer_statistics()
        assert stats.total_transfers == 3
        assert stats.cross_currency_transfers == 1
        assert stats.same_currency_transfers == 2
        assert stats.total_fees["USD"] == Decimal("1.00")
        assert stats.total_fx_gain_loss["INR"] == Decimal("0")

    def test_statistics_are_a_copy(self, transfer_service):
        stats = transfer_service.get_transfer_statistics()
        stats.total_transfers = 99
        assert transfer_service.get_transfer_statistics().total_transfers == 0
