"""Money rounding and coercion helpers."""

from decimal import Decimal

import pytest

from inventory_kernel.domain.values import as_decimal, round_money
from inventory_kernel.exceptions import ValidationError


@pytest.mark.parametrize(
    "amount,expected",
    [("2.675", "2.68"), ("2.665", "2.67"), ("-1.005", "-1.01"), ("7", "7.00")],
)
def test_round_money_half_up(amount, expected):
    assert round_money(Decimal(amount)) == Decimal(expected)


def test_round_money_out_of_range_names_field():
    with pytest.raises(ValidationError) as exc:
        round_money(Decimal("1e30"), "unit_price")
    assert exc.value.field == "unit_price"
    assert exc.value.value == Decimal("1e30")


def test_round_money_default_field():
    with pytest.raises(ValidationError) as exc:
        round_money(Decimal("1e30"))
    assert exc.value.field == "amount"


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", 1.5, True, None])
def test_as_decimal_rejects(value):
    with pytest.raises(ValidationError) as exc:
        as_decimal(value, "price")
    assert exc.value.field == "price"
