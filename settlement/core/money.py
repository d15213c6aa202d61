"""Fixed-point helpers for currency amounts.

Amounts are major units (e.g. dollars) held as Decimal and rounded
half-up to cents, which matches figures already recorded by the
marketplace.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or user-supplied amount to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, AttributeError) as e:
            raise ValueError(f"Invalid amount: {value!r}") from e

    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def round_money(value: Any) -> Decimal:
    """Round an amount to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_to_json(value: Decimal) -> float:
    """Render a Decimal amount for JSON columns and responses."""
    return float(round_money(value))
