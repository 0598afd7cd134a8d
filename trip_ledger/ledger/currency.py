"""
Currency conversion into a trip's BASE currency.

A trip carries one FOREIGN currency and one static rate:
1 FOREIGN = rate x BASE. The converter trusts its caller; a bad rate
(zero, negative, NaN, Infinity) is rejected at the input boundary, not here.
"""

from decimal import Decimal
from typing import Union

from trip_ledger.models.ledger import CurrencyKind

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Coerce a number to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_base(amount: Number, currency: CurrencyKind, rate: Number) -> Decimal:
    """
    Convert an amount to BASE currency.

    BASE amounts come back unchanged whatever the rate.
    FOREIGN amounts are multiplied by the rate; NaN and Infinity propagate.
    """
    amount = to_decimal(amount)
    if currency == CurrencyKind.BASE:
        return amount
    return amount * to_decimal(rate)
