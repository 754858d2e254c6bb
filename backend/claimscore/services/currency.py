"""
Currency helpers. Scoring works on integer cents so threshold comparisons
never see binary floating-point drift.
"""

from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def round_half_up(value: Decimal | float | int) -> int:
    """Round to the nearest integer, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: Decimal | float | int | None) -> int:
    if not amount:
        return 0
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return round_half_up(amount * 100)
