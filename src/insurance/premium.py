"""Premium computation for cargo transit insurance.

Premium is 0.2% of the consignment value (quantity x rate), capped at the
largest value a Decimal(10,2) column can hold.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

PREMIUM_RATE = Decimal("0.002")
MAX_PREMIUM = Decimal("99999999.99")
CENTS = Decimal("0.01")

# Column limits: Integer quantity, Numeric(12,2) rate
MAX_QUANTITY = 2_147_483_647
MAX_RATE = Decimal("9999999999.99")


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps 98.5 as 98.5 instead of its binary float expansion
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


MAX_LINE_TOTAL = quantize_cents(Decimal(MAX_QUANTITY) * MAX_RATE)


def clamp_premium(amount: Any) -> Decimal:
    value = to_decimal(amount)
    if value < 0:
        value = Decimal("0")
    # Compare before rounding: quantize overflows the context precision on huge values
    if value >= MAX_PREMIUM:
        return MAX_PREMIUM
    return min(quantize_cents(value), MAX_PREMIUM)


def line_total(quantity: int, rate: Optional[Any] = None) -> Decimal:
    """Consignment value printed on the invoice line, capped at MAX_LINE_TOTAL."""
    value = Decimal(int(quantity)) * to_decimal(rate)
    if value >= MAX_LINE_TOTAL:
        return MAX_LINE_TOTAL
    return quantize_cents(value)


def calculate_premium(quantity: int, rate: Optional[Any] = None) -> Decimal:
    """Return min(quantity * rate * 0.002, MAX_PREMIUM), rounded to cents.

    A missing rate counts as 0.
    """
    raw = Decimal(int(quantity)) * to_decimal(rate) * PREMIUM_RATE
    return clamp_premium(raw)


def finalize_premium(stored: Optional[Any], quantity: int, rate: Optional[Any] = None) -> Decimal:
    """Premium charged at approval time.

    Reuses the provisional premium stored at submission when there is one,
    otherwise recomputes it. The result is always re-clamped.
    """
    if stored is not None and stored != "":
        return clamp_premium(stored)
    return calculate_premium(quantity, rate)
