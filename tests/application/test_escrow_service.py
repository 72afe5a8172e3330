"""Tests for the escrow application service."""

from decimal import Decimal
from uuid import uuid4

import pytest

from sew4mi.application.escrow_service import EscrowService, InMemoryEscrowRepository
from sew4mi.domain import EscrowStage
from sew4mi.domain.exceptions import (
    ConflictError,
    EscrowAccountNotFoundError,
    InvalidAmountError,
    InvalidStateTransitionError,
    ValidationError,
)


@pytest.fixture
def service() -> EscrowService:
    return EscrowService(escrow_repo=InMemoryEscrowRepository())


@pytest.fixture
def order_id() -> str:
    return str(uuid4())


class TestOpenEscrow:
    """Tests for opening escrow."""

    async def test_open(self, service: EscrowService, order_id: str) -> None:
        account = await service.open_escrow(order_id, 1000)

        assert str(account.id) == order_id
        assert account.current_stage == EscrowStage.DEPOSIT
        assert (await service.get_escrow_status(order_id)).total_amount == Decimal("1000.00")

    async def test_open_again_same_total(self, service: EscrowService, order_id: str) -> None:
        first = await service.open_escrow(order_id, 1000)

        again = await service.open_escrow(order_id, "1000.00")

        assert again.id == first.id
        assert again.current_stage == EscrowStage.DEPOSIT

    async def test_open_again_different_total(
        self, service: EscrowService, order_id: str
    ) -> None:
        await service.open_escrow(order_id, 1000)

        with pytest.raises(ConflictError):
            await service.open_escrow(order_id, 900)

    async def test_invalid_order_id(self, service: EscrowService) -> None:
        with pytest.raises(ValidationError):
            await service.open_escrow("ORD-1", 1000)

    async def test_invalid_total(self, service: EscrowService, order_id: str) -> None:
        with pytest.raises(InvalidAmountError):
            await service.open_escrow(order_id, -1)

    async def test_unknown_order(self, service: EscrowService) -> None:
        with pytest.raises(EscrowAccountNotFoundError):
            await service.get_escrow_status(str(uuid4()))


class TestRecordDeposit:
    """Tests for deposit recording."""

    async def test_deposit_moves_to_fitting(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 123.45)

        account = await service.record_deposit(order_id, "30.86")

        assert account.current_stage == EscrowStage.FITTING
        assert account.deposit_paid == Decimal("30.86")
        assert await service.validate_escrow_state(order_id) == []

    async def test_wrong_amount(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 1000)

        with pytest.raises(ValidationError):
            await service.record_deposit(order_id, 200)

        assert (await service.get_escrow_status(order_id)).current_stage == EscrowStage.DEPOSIT

    async def test_second_deposit(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 1000)
        await service.record_deposit(order_id, 250)

        with pytest.raises(InvalidStateTransitionError):
            await service.record_deposit(order_id, 250)


class TestReleaseStagePayment:
    """Tests for the in-process payment release."""

    async def test_release_fitting_then_final(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 1000)
        await service.record_deposit(order_id, 250)

        assert await service.release_stage_payment(order_id, "ms-1", Decimal("500.00"))
        assert await service.release_stage_payment(order_id, "ms-2", Decimal("250.00"))

        account = await service.get_escrow_status(order_id)
        assert account.current_stage == EscrowStage.RELEASED
        assert account.escrow_balance == Decimal("0.00")
        assert account.validate_state() == []

    async def test_release_is_idempotent_per_milestone(
        self, service: EscrowService, order_id: str
    ) -> None:
        await service.open_escrow(order_id, 1000)
        await service.record_deposit(order_id, 250)
        await service.release_stage_payment(order_id, "ms-1", Decimal("500.00"))

        assert await service.release_stage_payment(order_id, "ms-1", Decimal("500.00"))

        account = await service.get_escrow_status(order_id)
        assert account.current_stage == EscrowStage.FINAL
        assert account.fitting_paid == Decimal("500.00")

    async def test_release_before_deposit(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 1000)

        assert not await service.release_stage_payment(order_id, "ms-1", Decimal("500.00"))

    async def test_release_wrong_amount(self, service: EscrowService, order_id: str) -> None:
        await service.open_escrow(order_id, 1000)
        await service.record_deposit(order_id, 250)

        assert not await service.release_stage_payment(order_id, "ms-1", Decimal("250.00"))
        assert (await service.get_escrow_status(order_id)).current_stage == EscrowStage.FITTING

    async def test_release_unknown_order(self, service: EscrowService) -> None:
        assert not await service.release_stage_payment(str(uuid4()), "ms-1", Decimal("1.00"))

    async def test_release_after_fully_released(
        self, service: EscrowService, order_id: str
    ) -> None:
        await service.open_escrow(order_id, 1000)
        await service.record_deposit(order_id, 250)
        await service.release_stage_payment(order_id, "ms-1", Decimal("500.00"))
        await service.release_stage_payment(order_id, "ms-2", Decimal("250.00"))

        assert not await service.release_stage_payment(order_id, "ms-3", Decimal("250.00"))


class TestCalculator:
    """Tests for calculator passthroughs."""

    def test_breakdown(self, service: EscrowService) -> None:
        assert service.calculate_breakdown(1000).fitting_amount == Decimal("500.00")

    def test_stage_amount(self, service: EscrowService) -> None:
        assert service.get_stage_amount(1000, "RELEASED") == Decimal("0.00")
