"""Rounding and proration helpers shared by the vendor transformers.

Vendor-side reconciliation compares integers exactly, so every rounding here
reproduces JavaScript ``Math.round`` (half away from zero for the non-negative
amounts we deal with) rather than Python's banker's rounding.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Sequence, Union

Number = Union[int, float, Decimal, str]


def to_decimal(value: Number | None) -> Decimal:
    """Convert a numeric-ish value to Decimal, treating None/blank as zero."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number | None) -> int:
    """Round to the nearest integer, halves rounding up (``round(12.5) == 13``)."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def floor_int(value: Number | None) -> int:
    """Truncate toward negative infinity, like ``Math.floor``."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_FLOOR))


def tax_on(amount: Number, rate: Number) -> int:
    """Tax for ``amount`` at ``rate`` percent, rounded half up."""
    return round_half_up(to_decimal(amount) * to_decimal(rate) / Decimal("100"))


def prorate(amounts: Sequence[Number], total: Number) -> list[int]:
    """
    Allocate ``total`` across ``amounts`` proportionally.

    A single amount receives the whole total. With several amounts each share
    is ``round(amount / sum(amounts) * total)``; the shares are not reconciled,
    so their sum may differ from ``total`` by a rounding residual.

    Args:
        amounts: Per-item base amounts
        total: Amount to distribute

    Returns:
        List of integer shares in the same order as ``amounts``
    """
    if not amounts:
        return []

    total_dec = to_decimal(total)
    if len(amounts) == 1:
        return [round_half_up(total_dec)]

    base = sum((to_decimal(a) for a in amounts), Decimal("0"))
    if base == 0:
        return [0 for _ in amounts]

    return [round_half_up(to_decimal(a) / base * total_dec) for a in amounts]


def js_number(value: Number | None) -> int | float:
    """
    Render a Decimal the way a JSON number from the browser would look.

    Integral values become ``int`` (``100`` not ``100.0``), everything else a
    ``float``.
    """
    dec = to_decimal(value)
    if dec == dec.to_integral_value():
        return int(dec)
    return float(dec)
