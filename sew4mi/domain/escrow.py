"""Escrow payment-stage calculator.

Splits an order total into the three escrow tranches:

    deposit  25%   paid up front
    fitting  50%   released when the fitting milestone is approved
    final    25%   released on delivery approval

The final tranche is always computed as the remainder of the rounded
total after the deposit and fitting tranches, so the three parts add
up to the total exactly whichever way the first two were rounded.
For example 99.99 splits as 25.00 + 50.00 + 24.99.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sew4mi.domain.base import ValueObject
from sew4mi.domain.exceptions import EscrowCalculationError, InvalidAmountError
from sew4mi.domain.state_machines import EscrowStage
from sew4mi.domain.value_objects import CENT, CURRENCY, ZERO, parse_amount, round_money

ESCROW_PERCENTAGES: dict[EscrowStage, Decimal] = {
    EscrowStage.DEPOSIT: Decimal("0.25"),
    EscrowStage.FITTING: Decimal("0.50"),
    EscrowStage.FINAL: Decimal("0.25"),
}

SUM_TOLERANCE = CENT


@dataclass(frozen=True)
class EscrowBreakdown(ValueObject):
    """Three-tranche payment schedule for one order total.

    Attributes:
        total_amount: Order total rounded to 2 places.
        deposit_amount: Deposit tranche.
        fitting_amount: Fitting tranche.
        final_amount: Final tranche (remainder).
        currency: Currency of all amounts.
    """

    total_amount: Decimal
    deposit_amount: Decimal
    fitting_amount: Decimal
    final_amount: Decimal
    deposit_percentage: Decimal = ESCROW_PERCENTAGES[EscrowStage.DEPOSIT]
    fitting_percentage: Decimal = ESCROW_PERCENTAGES[EscrowStage.FITTING]
    final_percentage: Decimal = ESCROW_PERCENTAGES[EscrowStage.FINAL]
    currency: str = CURRENCY

    def amount_for(self, stage: EscrowStage) -> Decimal:
        """Get the tranche for a stage (zero for RELEASED)."""
        return {
            EscrowStage.DEPOSIT: self.deposit_amount,
            EscrowStage.FITTING: self.fitting_amount,
            EscrowStage.FINAL: self.final_amount,
        }.get(stage, ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_amount": str(self.total_amount),
            "deposit_amount": str(self.deposit_amount),
            "fitting_amount": str(self.fitting_amount),
            "final_amount": str(self.final_amount),
            "deposit_percentage": str(self.deposit_percentage),
            "fitting_percentage": str(self.fitting_percentage),
            "final_percentage": str(self.final_percentage),
            "currency": self.currency,
        }


def calculate_breakdown(total_amount: object) -> EscrowBreakdown:
    """Compute the deposit/fitting/final split for an order total.

    Args:
        total_amount: Order total as int, float, Decimal or numeric string.

    Returns:
        EscrowBreakdown whose tranches sum to the rounded total.

    Raises:
        InvalidAmountError: If the total is not a finite number > 0.
        EscrowCalculationError: If the tranches fail to reconstruct the total.
    """
    rounded_total = parse_amount(total_amount)

    deposit = round_money(rounded_total * ESCROW_PERCENTAGES[EscrowStage.DEPOSIT])
    fitting = round_money(rounded_total * ESCROW_PERCENTAGES[EscrowStage.FITTING])
    final = round_money(rounded_total - deposit - fitting)

    breakdown = EscrowBreakdown(
        total_amount=rounded_total,
        deposit_amount=deposit,
        fitting_amount=fitting,
        final_amount=final,
    )

    if not validate_breakdown(breakdown):
        raise EscrowCalculationError(
            f"Escrow breakdown does not sum to total {rounded_total}",
            details=breakdown.to_dict(),
        )

    return breakdown


def calculate_deposit_amount(total_amount: object) -> Decimal:
    """Deposit tranche for an order total."""
    return calculate_breakdown(total_amount).deposit_amount


def calculate_fitting_amount(total_amount: object) -> Decimal:
    """Fitting tranche for an order total."""
    return calculate_breakdown(total_amount).fitting_amount


def calculate_final_amount(total_amount: object) -> Decimal:
    """Final tranche for an order total."""
    return calculate_breakdown(total_amount).final_amount


def get_stage_amount(total_amount: object, stage: EscrowStage | str) -> Decimal:
    """Look up the tranche owed at an escrow stage.

    Args:
        total_amount: Order total.
        stage: Escrow stage or its string value.

    Returns:
        Tranche amount; ``0.00`` for RELEASED.

    Raises:
        InvalidAmountError: If the stage is unknown or the total is invalid.
    """
    try:
        stage = EscrowStage(stage)
    except ValueError:
        raise InvalidAmountError(stage, "unknown escrow stage") from None

    return calculate_breakdown(total_amount).amount_for(stage)


def validate_breakdown(breakdown: object) -> bool:
    """Check that a breakdown's tranches add up to its total.

    Never raises; malformed breakdowns are simply invalid.

    Args:
        breakdown: An EscrowBreakdown, possibly received from another layer.

    Returns:
        True if all amounts are finite and sum to the total within 0.01.
    """
    try:
        amounts = [
            Decimal(getattr(breakdown, name))
            for name in ("total_amount", "deposit_amount", "fitting_amount", "final_amount")
        ]
    except (AttributeError, TypeError, ValueError, ArithmeticError):
        return False

    if not all(amount.is_finite() for amount in amounts):
        return False

    total, deposit, fitting, final = amounts
    if min(deposit, fitting, final) < 0:
        return False

    return abs(deposit + fitting + final - total) <= SUM_TOLERANCE
