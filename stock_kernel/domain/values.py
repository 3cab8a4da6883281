"""
Numeric helpers shared by the engine and the services.

All quantities and costs are ``Decimal`` -- never ``float``.  Inputs from
callers may be int, str or Decimal; ``to_decimal`` normalizes them and
rejects floats so binary rounding noise never enters the ledger.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Floating-point tolerance for quantities, in the stock unit of the product.
# Not a business threshold.
EPSILON = Decimal("0.001")

ZERO = Decimal("0")

Numeric = Decimal | int | str


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert an int, str or Decimal to Decimal.

    Raises:
        TypeError: if ``value`` is a float or bool.
        ValueError: if ``value`` is not a finite number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Use Decimal, int or str for quantities and costs, got {type(value).__name__}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_money(amount: Decimal, decimal_places: int) -> Decimal:
    """Round a monetary amount to the currency's minor unit (half-up)."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)
