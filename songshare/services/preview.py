"""
Ownership preview shown before payment.

This is an advisory estimate only:

    estimate = amount / (available_to_invest + amount) * 100

It treats what is left to invest plus the new contribution as the pool,
which differs from the settled percentage computed in pool_math against
the song's true total_royalty_pool. Nothing in the settlement path may
import from this module.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

HUNDRED = Decimal("100")
DISPLAY_QUANTUM = Decimal("0.01")


def available_to_invest(total_royalty_pool: Decimal, invested_amounts: Iterable[Decimal]) -> Decimal:
    """Pool value not yet covered by investments, floored at zero."""
    invested = sum((Decimal(a) for a in invested_amounts), Decimal("0"))
    return max(Decimal(total_royalty_pool) - invested, Decimal("0"))


def estimate_ownership_percentage(available_amount: Decimal, amount: Decimal) -> Decimal:
    """Estimated percentage for a proposed contribution, to 2 decimal places."""
    amount = Decimal(amount)
    denominator = Decimal(available_amount) + amount
    if amount <= 0 or denominator <= 0:
        return Decimal("0.00")
    return (amount / denominator * HUNDRED).quantize(DISPLAY_QUANTUM, rounding=ROUND_HALF_UP)
