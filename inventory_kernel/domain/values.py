"""
Money and quantity value helpers.

All money in the kernel is ``Decimal`` with two decimal places, rounded
half-up.  Quantities are plain ``int`` and must never be ``bool``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from inventory_kernel.exceptions import ValidationError

MONEY_DECIMAL_PLACES = 2
MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")


def round_money(amount: Decimal, field: str = "amount") -> Decimal:
    """
    Round to two decimal places, half-up. The only sanctioned money rounding.

    Raises:
        ValidationError: amount has too many digits to carry two decimal
            places (e.g. Decimal("1e30")).
    """
    try:
        return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range: {amount}", field=field, value=amount) from None


def as_decimal(value: object, field: str) -> Decimal:
    """
    Coerce an int, str or Decimal into a finite Decimal.

    Floats are rejected outright: ``0.1 + 0.2`` has no place in a till.

    Raises:
        ValidationError: value is a float, bool, non-numeric or non-finite.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{field} must be a Decimal, int or numeric string, not {type(value).__name__}",
            field=field,
            value=value,
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ArithmeticError):
            raise ValidationError(
                f"{field} is not a number: {value!r}", field=field, value=value
            ) from None
    else:
        raise ValidationError(
            f"{field} has unsupported type {type(value).__name__}", field=field, value=value
        )
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field, value=value)
    return result


def require_positive_int(value: object, field: str) -> int:
    """Return ``value`` if it is an int > 0 (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    if value <= 0:
        raise ValidationError(f"{field} must be positive", field=field, value=value)
    return value
