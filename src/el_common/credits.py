"""Decimal arithmetic for credit amounts.

Balances and transaction amounts are NUMERIC(20, 10) in PostgreSQL and
``Decimal`` in Python. Never float: per-call AI costs are fractions of a cent.
"""

from decimal import ROUND_HALF_UP, Decimal

CREDIT_SCALE = Decimal("0.0000000001")  # matches NUMERIC(20, 10)
ONE_MILLION = Decimal(1_000_000)


def quantize_credits(amount: Decimal) -> Decimal:
    """Round to the storage scale (10 fractional digits, half-up)."""
    return amount.quantize(CREDIT_SCALE, rounding=ROUND_HALF_UP)


def to_credits(value: int | str | Decimal) -> Decimal:
    """Parse an external quantity (webhook metadata, DB row) into credits."""
    return quantize_credits(Decimal(str(value)))


def credits_to_display(amount: Decimal) -> str:
    """Human-readable credits: Decimal('12.5') -> '12.50', Decimal('-0.00045') -> '-0.00045'.

    At least two fractional digits, trailing zeros beyond that trimmed.
    """
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.10f}".rstrip("0")
    whole, _, frac = text.partition(".")
    return f"{sign}{whole}.{frac.ljust(2, '0')}"
