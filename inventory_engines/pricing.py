"""
inventory_engines.pricing -- Cart totals and discounts.

Responsibility:
    Validate cart lines and compute subtotal, discount and total with
    two-decimal, half-up rounding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Rules:
    line_total = round(quantity * unit_price)
    subtotal   = sum(line_total)
    discount   = round(subtotal * percent / 100)   for a percent discount (0..100)
               = amount                            for an amount discount (0..subtotal)
    total      = max(0, subtotal - discount)

Failure modes:
    - ValidationError for an empty cart, a non-positive quantity or unit
      price, or a discount outside its range.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from inventory_kernel.domain.dtos import CartLine, Discount, DiscountKind
from inventory_kernel.domain.values import ZERO, as_decimal, require_positive_int, round_money
from inventory_kernel.exceptions import ValidationError

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricedLine:
    line_no: int
    line: CartLine
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CartTotals:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal


def price_line(line_no: int, line: CartLine) -> PricedLine:
    quantity = require_positive_int(line.quantity, f"lines[{line_no}].quantity")
    field = f"lines[{line_no}].unit_price"
    unit_price = round_money(as_decimal(line.unit_price, field), field)
    if unit_price <= ZERO:
        raise ValidationError(
            f"Unit price must be positive on line {line_no}",
            field=field,
            value=line.unit_price,
        )
    return PricedLine(
        line_no=line_no,
        line=line,
        quantity=quantity,
        unit_price=unit_price,
        line_total=round_money(unit_price * quantity, f"lines[{line_no}].line_total"),
    )


def discount_amount(subtotal: Decimal, discount: Discount | None) -> Decimal:
    if discount is None:
        return ZERO
    if not isinstance(discount.kind, DiscountKind):
        raise ValidationError("Unknown discount kind", field="discount", value=discount.kind)
    value = as_decimal(discount.value, "discount")
    if discount.kind is DiscountKind.PERCENT:
        if value < ZERO or value > HUNDRED:
            raise ValidationError(
                "Percent discount must be between 0 and 100", field="discount", value=value
            )
        return round_money(subtotal * value / HUNDRED, "discount")
    value = round_money(value, "discount")
    if value < ZERO or value > subtotal:
        raise ValidationError(
            f"Discount amount must be between 0 and the subtotal {subtotal}",
            field="discount",
            value=value,
        )
    return value


def compute_totals(lines: Sequence[CartLine], discount: Discount | None = None) -> CartTotals:
    """Price every line (numbered from 1) and apply the cart discount."""
    if not lines:
        raise ValidationError("Cart is empty", field="lines")
    priced = tuple(price_line(i, line) for i, line in enumerate(lines, start=1))
    subtotal = round_money(sum((p.line_total for p in priced), ZERO), "subtotal")
    discount_value = discount_amount(subtotal, discount)
    total = max(ZERO, round_money(subtotal - discount_value))
    return CartTotals(
        lines=priced,
        subtotal=subtotal,
        discount_amount=discount_value,
        total=total,
    )
