"""Conversions between wire decimals and integer cents"""

from decimal import Decimal, ROUND_HALF_UP


def to_cents(amount: Decimal) -> int:
    """Decimal currency amount -> integer cents (half-up)"""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    """Integer cents -> decimal number for JSON responses"""
    return float(Decimal(cents) / 100)
