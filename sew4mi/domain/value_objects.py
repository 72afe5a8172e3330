"""Value Objects for the domain layer.

Typed identifiers and money helpers. Money is a ``Decimal`` quantised
to two places; floats are converted through their string form so that
binary floating-point drift never reaches a ledger.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Self
from uuid import UUID, uuid4

from sew4mi.domain.base import ValueObject
from sew4mi.domain.exceptions import InvalidAmountError

CURRENCY = "GHS"
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class _UUIDIdentifier(ValueObject):
    """UUID-backed identifier shared by the typed ids below."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new identifier with a random UUID."""
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create identifier from its string form.

        Raises:
            ValueError: If value is not a valid UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class MilestoneId(_UUIDIdentifier):
    """Strongly-typed milestone identifier."""


@dataclass(frozen=True)
class OrderId(_UUIDIdentifier):
    """Strongly-typed order identifier."""


@dataclass(frozen=True)
class ApprovalRecordId(_UUIDIdentifier):
    """Strongly-typed identifier of an approval audit record."""


# ============================================================================
# Money
# ============================================================================


def round_money(amount: Decimal) -> Decimal:
    """Round a decimal amount to whole pesewas (2 places, half up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: object) -> Decimal:
    """Convert a numeric input into a finite ``Decimal``.

    Accepts ``int``, ``float``, ``Decimal`` and numeric strings.

    Args:
        value: Raw amount.

    Returns:
        Unrounded decimal value.

    Raises:
        InvalidAmountError: If value is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value, "must be a finite number")

    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidAmountError(value, "must be a finite number")
        # str() gives the shortest repr, so 0.1 stays 0.1
        value = str(value)

    if isinstance(value, (int, str)):
        try:
            value = Decimal(value)
        except InvalidOperation:
            raise InvalidAmountError(value, "must be a finite number") from None

    if not isinstance(value, Decimal) or not value.is_finite():
        raise InvalidAmountError(value, "must be a finite number")

    return value


def parse_amount(value: object) -> Decimal:
    """Parse a strictly positive money amount rounded to 2 places.

    Raises:
        InvalidAmountError: If value is not finite or not greater than 0.
    """
    amount = round_money(to_decimal(value))
    # Sub-pesewa totals round to 0.00
    if amount <= 0:
        raise InvalidAmountError(value, "must be greater than 0")
    return amount


def format_money(amount: Decimal, currency: str = CURRENCY) -> str:
    """Format an amount for display, e.g. ``GHS 123.45``."""
    return f"{currency} {round_money(amount):.2f}"
