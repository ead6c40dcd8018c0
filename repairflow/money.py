# -*- coding: utf-8 -*-
"""
Fixed-point currency helpers

Amounts are stored as integer minor units (cents) and exposed as Decimal with
two fractional digits.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

CENT = Decimal("0.01")

# Largest magnitude a signed 64-bit store column holds
MAX_CENTS = 2 ** 63 - 1

Amount = Union[Decimal, int, str]


def to_cents(amount: Amount) -> int:
    """
    Convert a decimal amount to minor units.

    Raises ValueError for non-numeric values, for more than two fractional
    digits and for amounts the store cannot hold; rounding money silently is
    never done.
    """
    if isinstance(amount, float):
        raise ValueError("float amounts are not accepted, use Decimal or str")
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"not a finite amount: {amount!r}")
    try:
        exact = value == value.quantize(CENT)
    except InvalidOperation:
        raise ValueError(f"amount out of range: {amount}")
    if not exact:
        raise ValueError(f"more than two fractional digits: {amount}")
    cents = int(value * 100)
    if abs(cents) > MAX_CENTS:
        raise ValueError(f"amount out of range: {amount}")
    return cents


def from_cents(cents: Optional[int]) -> Optional[Decimal]:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)
