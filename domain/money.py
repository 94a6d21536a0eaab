"""
Domain: Money helpers.

All monetary arithmetic runs on integer cents. Values enter and leave the
domain as `Decimal` quantized to two places; floats are converted through
their string representation so 201.67 stays 201.67.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")

MoneyInput = Union[Decimal, int, float, str]


def to_decimal(value: MoneyInput) -> Decimal:
    """Convert an amount to a two-place Decimal (half-up)."""

    if isinstance(value, bool):
        raise TypeError("bool is not a monetary amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: MoneyInput) -> int:
    """Convert an amount to integer cents."""

    return int(to_decimal(value) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""

    return (Decimal(cents) / 100).quantize(CENT)


def apply_percent(cents: int, percent: MoneyInput) -> int:
    """
    Return `percent`% of `cents`, rounded half-up to the cent.

    Example:
        apply_percent(40334, 80)  # 32267 (322.67)
    """

    scaled = Decimal(cents) * Decimal(str(percent)) / 100
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


__all__ = ["CENT", "MoneyInput", "to_decimal", "to_cents", "from_cents", "apply_percent"]
