"""
Royalty pool arithmetic.

Business rules:
1. Settlement of a confirmed contribution `amount` into a song:
   - new_total_pool = total_royalty_pool + amount
   - new_amount_invested = existing_amount_invested + amount (or amount)
   - every investor's percentage = amount_invested / new_total_pool * 100

2. Percentages are always recomputed from current amounts, never adjusted
   by deltas, so Σ percentages == Σ amount_invested / pool * 100 holds
   regardless of settlement order.

3. Distribution:
   - payout = monthly_revenue * royalty_percentage / 100
   - each payout is rounded to cents with ROUND_HALF_UP
   - the rounding residual (expected total - Σ payouts) is accepted and
     reported, never pushed onto an individual investor

All arithmetic is Decimal. Floats are accepted as input only through
their string form.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Hashable, Mapping, Tuple, TypeVar

from songshare.core.exceptions import InvalidAmountError

K = TypeVar("K", bound=Hashable)

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
# Stored scale of Investment.royalty_percentage
PERCENT_QUANTUM = Decimal("0.00000001")


@dataclass
class SettlementPlan:
    """Outcome of applying one contribution to a pool."""
    new_total_pool: Decimal
    investor_amount: Decimal
    investor_percentage: Decimal
    percentages: Dict = field(default_factory=dict)


def to_amount(value) -> Decimal:
    """
    Parse a monetary value into a Decimal.

    Raises:
        InvalidAmountError: if the value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Amount must be numeric, got {value!r}")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Amount must be numeric, got {value!r}")
    else:
        raise InvalidAmountError(f"Amount must be numeric, got {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")

    return amount


def to_money(value) -> Decimal:
    """Parse a monetary value that must be expressible in whole cents."""
    amount = to_amount(value)
    if amount != amount.quantize(CENT):
        raise InvalidAmountError(f"Amount must have at most 2 decimal places, got {amount}")
    return amount


def validate_contribution(value, minimum: Decimal | None = None) -> Decimal:
    """
    Validate a contribution amount.

    Args:
        value: Raw amount
        minimum: Optional minimum contribution (inclusive)

    Returns:
        The amount as Decimal

    Raises:
        InvalidAmountError: if non-numeric, non-positive or below minimum
    """
    amount = to_money(value)

    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")

    if minimum is not None and amount < minimum:
        raise InvalidAmountError(f"Amount must be at least {minimum}, got {amount}")

    return amount


def ownership_percentage(amount_invested: Decimal, total_pool: Decimal) -> Decimal:
    """Authoritative share of a pool: amount_invested / total_pool * 100."""
    if total_pool <= 0:
        return Decimal("0")
    return (Decimal(amount_invested) / Decimal(total_pool) * HUNDRED).quantize(
        PERCENT_QUANTUM, rounding=ROUND_HALF_UP
    )


def recompute_percentages(
    holdings: Mapping[K, Decimal],
    total_pool: Decimal,
) -> Dict[K, Decimal]:
    """Recompute every holder's percentage from scratch against total_pool."""
    return {
        key: ownership_percentage(amount, total_pool)
        for key, amount in holdings.items()
    }


def plan_settlement(
    total_pool: Decimal,
    holdings: Mapping[K, Decimal],
    investor: K,
    amount: Decimal,
) -> SettlementPlan:
    """
    Compute the pool state after settling `amount` for `investor`.

    Args:
        total_pool: Current total_royalty_pool
        holdings: Current amount_invested per investor
        investor: Key of the contributing investor
        amount: Validated contribution

    Returns:
        SettlementPlan with the new pool and every investor's percentage
    """
    new_total_pool = Decimal(total_pool) + amount

    new_holdings = dict(holdings)
    new_holdings[investor] = Decimal(new_holdings.get(investor, Decimal("0"))) + amount

    percentages = recompute_percentages(new_holdings, new_total_pool)

    return SettlementPlan(
        new_total_pool=new_total_pool,
        investor_amount=new_holdings[investor],
        investor_percentage=percentages[investor],
        percentages=percentages,
    )


def payout_amount(monthly_revenue: Decimal, royalty_percentage: Decimal) -> Decimal:
    """One investor's payout, rounded half-up to cents."""
    raw = Decimal(monthly_revenue) * Decimal(royalty_percentage) / HUNDRED
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)


def split_revenue(
    monthly_revenue: Decimal,
    percentages: Mapping[K, Decimal],
) -> Tuple[Dict[K, Decimal], Decimal]:
    """
    Split revenue across holders.

    Returns:
        (payout per holder, rounding residual). The residual is the
        unrounded expected total minus the sum of rounded payouts; it may
        be slightly positive or negative.
    """
    payouts = {
        key: payout_amount(monthly_revenue, pct)
        for key, pct in percentages.items()
    }
    expected = sum(
        (Decimal(monthly_revenue) * Decimal(pct) / HUNDRED for pct in percentages.values()),
        Decimal("0"),
    )
    residual = expected - sum(payouts.values(), Decimal("0"))
    return payouts, residual
