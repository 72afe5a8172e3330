"""Escrow application service.

Keeps the per-order escrow ledger:
- Opening escrow for an order total
- Recording the customer's deposit
- Releasing the fitting and final tranches when milestones are approved
- Reporting balance and consistency problems

EscrowService also serves as the in-process PaymentReleaseGateway for
the milestone workflow when no remote escrow service is configured.
"""

import copy
from decimal import Decimal
from threading import Lock

import structlog

from sew4mi.domain.entities import EscrowAccount
from sew4mi.domain.escrow import EscrowBreakdown, calculate_breakdown, get_stage_amount
from sew4mi.domain.exceptions import (
    ConflictError,
    EscrowAccountNotFoundError,
    ValidationError,
)
from sew4mi.domain.state_machines import EscrowStage
from sew4mi.domain.value_objects import OrderId, parse_amount, round_money, to_decimal

logger = structlog.get_logger()


# ============================================================================
# In-Memory Escrow Repository
# ============================================================================


class InMemoryEscrowRepository:
    """In-memory repository for escrow accounts, keyed by order id."""

    def __init__(self) -> None:
        self._accounts: dict[str, EscrowAccount] = {}
        self._lock = Lock()

    def get(self, order_id: str) -> EscrowAccount | None:
        with self._lock:
            account = self._accounts.get(order_id)
            return copy.deepcopy(account) if account else None

    def save(self, account: EscrowAccount) -> None:
        with self._lock:
            self._accounts[str(account.id)] = copy.deepcopy(account)


# Global repository instance
_escrow_repo: InMemoryEscrowRepository | None = None


def get_escrow_repository() -> InMemoryEscrowRepository:
    """Get escrow repository singleton."""
    global _escrow_repo
    if _escrow_repo is None:
        _escrow_repo = InMemoryEscrowRepository()
    return _escrow_repo


def reset_escrow_repository() -> None:
    """Reset escrow repository (for testing)."""
    global _escrow_repo
    _escrow_repo = InMemoryEscrowRepository()


# ============================================================================
# Escrow Service
# ============================================================================


def _parse_order_id(order_id: str) -> OrderId:
    try:
        return OrderId.from_string(order_id)
    except ValueError:
        raise ValidationError(
            f"Invalid order id: {order_id}", details={"order_id": order_id}
        ) from None


class EscrowService:
    """Application service for escrow ledgers."""

    def __init__(
        self,
        escrow_repo: InMemoryEscrowRepository | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            escrow_repo: Escrow repository.
            request_id: Request ID for correlation.
        """
        self.escrow_repo = escrow_repo or get_escrow_repository()
        self.request_id = request_id

    # -------------------------------------------------------------------------
    # Calculator
    # -------------------------------------------------------------------------

    def calculate_breakdown(self, total_amount: object) -> EscrowBreakdown:
        return calculate_breakdown(total_amount)

    def get_stage_amount(self, total_amount: object, stage: EscrowStage | str) -> Decimal:
        return get_stage_amount(total_amount, stage)

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def open_escrow(self, order_id: str, total_amount: object) -> EscrowAccount:
        """Open escrow for an order.

        Opening again with the same total returns the existing account.

        Args:
            order_id: Order identifier (UUID).
            total_amount: Order total.

        Returns:
            Escrow account, new accounts start at the DEPOSIT stage.

        Raises:
            ValidationError: If the order id is invalid.
            InvalidAmountError: If the total is not a positive number.
            ConflictError: If escrow exists for the order with another total.
        """
        oid = _parse_order_id(order_id)
        total = parse_amount(total_amount)

        existing = self.escrow_repo.get(str(oid))
        if existing is not None:
            if existing.total_amount != total:
                raise ConflictError(
                    f"Escrow already opened for order {oid} with a different total",
                    details={
                        "order_id": str(oid),
                        "total_amount": str(existing.total_amount),
                    },
                )
            return existing

        account = EscrowAccount.open(oid, total)
        events = account.collect_events()
        self.escrow_repo.save(account)

        logger.info(
            "Escrow opened",
            order_id=str(oid),
            total_amount=str(account.total_amount),
            events=[e.to_dict() for e in events],
            request_id=self.request_id,
        )
        return account

    async def record_deposit(self, order_id: str, amount: object) -> EscrowAccount:
        """Record the customer's deposit for an order.

        Raises:
            EscrowAccountNotFoundError: If no escrow exists for the order.
            InvalidStateTransitionError: If the deposit was already recorded.
            ValidationError: If the amount is not the deposit tranche.
        """
        account = await self.get_escrow_status(order_id)
        account.record_deposit(amount)
        account.collect_events()
        self.escrow_repo.save(account)

        logger.info(
            "Escrow deposit recorded",
            order_id=order_id,
            amount=str(account.deposit_paid),
            request_id=self.request_id,
        )
        return account

    async def get_escrow_status(self, order_id: str) -> EscrowAccount:
        """Load the escrow account for an order.

        Raises:
            EscrowAccountNotFoundError: If no escrow exists for the order.
        """
        account = self.escrow_repo.get(order_id)
        if account is None:
            raise EscrowAccountNotFoundError(order_id)
        return account

    async def validate_escrow_state(self, order_id: str) -> list[str]:
        """List consistency problems of an order's escrow ledger."""
        account = await self.get_escrow_status(order_id)
        errors = account.validate_state()
        if errors:
            logger.warning(
                "Escrow state inconsistent",
                order_id=order_id,
                errors=errors,
                request_id=self.request_id,
            )
        return errors

    # -------------------------------------------------------------------------
    # Payment Release
    # -------------------------------------------------------------------------

    async def release_stage_payment(
        self, order_id: str, milestone_id: str, amount: Decimal
    ) -> bool:
        """Release the tranche the escrow is currently holding.

        Releasing twice for the same milestone is a no-op that reports
        success.

        Args:
            order_id: Order identifier.
            milestone_id: Approved milestone.
            amount: Tranche amount the caller expects to release.

        Returns:
            True if the tranche was released (or already had been).
        """
        account = self.escrow_repo.get(order_id)
        if account is None:
            logger.warning(
                "Payment release for unknown escrow",
                order_id=order_id,
                milestone_id=milestone_id,
                request_id=self.request_id,
            )
            return False

        if account.has_released(milestone_id):
            logger.info(
                "Payment already released for milestone",
                order_id=order_id,
                milestone_id=milestone_id,
                request_id=self.request_id,
            )
            return True

        stage = account.current_stage
        if stage not in {EscrowStage.FITTING, EscrowStage.FINAL}:
            logger.warning(
                "Escrow not at a payable stage",
                order_id=order_id,
                milestone_id=milestone_id,
                stage=stage.value,
                request_id=self.request_id,
            )
            return False

        expected = account.breakdown.amount_for(stage)
        requested = round_money(to_decimal(amount))
        if requested != expected:
            logger.warning(
                "Payment release amount mismatch",
                order_id=order_id,
                milestone_id=milestone_id,
                stage=stage.value,
                expected=str(expected),
                requested=str(requested),
                request_id=self.request_id,
            )
            return False

        released = account.release_stage(stage, milestone_id)
        account.collect_events()
        self.escrow_repo.save(account)

        logger.info(
            "Escrow stage released",
            order_id=order_id,
            milestone_id=milestone_id,
            stage=stage.value,
            new_stage=account.current_stage.value,
            amount=str(released),
            request_id=self.request_id,
        )
        return True


# ============================================================================
# Service Factory
# ============================================================================


def get_escrow_service(request_id: str | None = None) -> EscrowService:
    """Get escrow service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        EscrowService instance.
    """
    return EscrowService(request_id=request_id)
