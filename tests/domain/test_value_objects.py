"""Tests for domain value objects."""

from decimal import Decimal
from uuid import UUID

import pytest

from sew4mi.domain import MilestoneId, OrderId, format_money, parse_amount, round_money
from sew4mi.domain.exceptions import InvalidAmountError
from sew4mi.domain.value_objects import to_decimal


class TestIdentifiers:
    """Tests for typed identifiers."""

    def test_generate_is_unique(self) -> None:
        assert MilestoneId.generate() != MilestoneId.generate()

    def test_round_trip_through_string(self) -> None:
        """from_string accepts what str() produces."""
        order_id = OrderId.generate()
        assert OrderId.from_string(str(order_id)) == order_id
        assert isinstance(order_id.value, UUID)

    def test_invalid_string_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            MilestoneId.from_string("not-a-uuid")

    def test_identifiers_are_immutable(self) -> None:
        order_id = OrderId.generate()
        with pytest.raises(AttributeError):
            order_id.value = UUID(int=0)  # type: ignore[misc]


class TestMoneyHelpers:
    """Tests for money conversion and rounding."""

    def test_round_half_up(self) -> None:
        """Half a pesewa rounds away from zero."""
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("2.674")) == Decimal("2.67")

    def test_float_goes_through_str(self) -> None:
        """2.675 as a float still rounds to 2.68."""
        assert round_money(to_decimal(2.675)) == Decimal("2.68")

    def test_to_decimal_accepts_numeric_types(self) -> None:
        assert to_decimal(5) == Decimal("5")
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(Decimal("1.1")) == Decimal("1.1")

    @pytest.mark.parametrize("value", [None, True, "", "1,000", float("nan"), Decimal("Infinity")])
    def test_to_decimal_rejects_non_numbers(self, value: object) -> None:
        with pytest.raises(InvalidAmountError):
            to_decimal(value)

    def test_parse_amount_rounds(self) -> None:
        assert parse_amount("19.999") == Decimal("20.00")

    def test_parse_amount_half_pesewa_rounds_up(self) -> None:
        assert parse_amount("0.005") == Decimal("0.01")

    @pytest.mark.parametrize("value", [0, -5, "-0.01", "0.004", 0.0049])
    def test_parse_amount_requires_positive(self, value: object) -> None:
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount(value)

        assert "greater than 0" in exc_info.value.message

    def test_format_money(self) -> None:
        assert format_money(Decimal("123.4")) == "GHS 123.40"
