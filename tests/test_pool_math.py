"""
Tests for pool arithmetic (songshare/services/pool_math.py)
and the advisory preview (songshare/services/preview.py).
"""

from decimal import Decimal

import pytest

from songshare.core.exceptions import InvalidAmountError
from songshare.services.pool_math import (
    ownership_percentage,
    payout_amount,
    plan_settlement,
    recompute_percentages,
    split_revenue,
    to_amount,
    validate_contribution,
)
from songshare.services.preview import available_to_invest, estimate_ownership_percentage


# ============================================================
# Amount validation
# ============================================================

class TestAmountValidation:
    """Tests for contribution amount parsing."""

    @pytest.mark.parametrize("value", ["100", 100, 100.0, Decimal("100.00")])
    def test_accepts_numeric_forms(self, value):
        assert validate_contribution(value) == Decimal("100")

    @pytest.mark.parametrize("value", [0, -1, "-0.01", Decimal("0")])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmountError):
            validate_contribution(value)

    @pytest.mark.parametrize("value", ["abc", None, True, "NaN", "Infinity", [100]])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(InvalidAmountError):
            validate_contribution(value)

    def test_rejects_fractional_cents(self):
        with pytest.raises(InvalidAmountError):
            validate_contribution("10.005")

    def test_enforces_minimum(self):
        with pytest.raises(InvalidAmountError):
            validate_contribution("0.50", minimum=Decimal("1"))
        assert validate_contribution("1", minimum=Decimal("1")) == Decimal("1")

    def test_invalid_amount_is_value_error(self):
        with pytest.raises(ValueError):
            to_amount("twelve")


# ============================================================
# Settlement arithmetic
# ============================================================

class TestSettlementPlan:
    """Tests for the authoritative settlement formula."""

    def test_first_investment_owns_whole_pool(self):
        plan = plan_settlement(Decimal("0"), {}, "alice", Decimal("100"))

        assert plan.new_total_pool == Decimal("100")
        assert plan.investor_percentage == Decimal("100")

    def test_recomputes_existing_investor(self):
        plan = plan_settlement(Decimal("1000"), {"alice": Decimal("200")}, "bob", Decimal("300"))

        assert plan.new_total_pool == Decimal("1300")
        assert plan.investor_amount == Decimal("300")
        assert plan.percentages["bob"].quantize(Decimal("0.01")) == Decimal("23.08")
        assert plan.percentages["alice"].quantize(Decimal("0.01")) == Decimal("15.38")

    def test_repeat_investor_accumulates(self):
        plan = plan_settlement(Decimal("100"), {"alice": Decimal("100")}, "alice", Decimal("100"))

        assert plan.investor_amount == Decimal("200")
        assert plan.new_total_pool == Decimal("200")
        assert plan.investor_percentage == Decimal("100")

    def test_four_investors_sum_to_hundred(self):
        pool = Decimal("0")
        holdings = {}
        for user, amount in [("a", "100"), ("b", "200"), ("c", "300"), ("d", "400")]:
            plan = plan_settlement(pool, holdings, user, Decimal(amount))
            pool = plan.new_total_pool
            holdings[user] = plan.investor_amount

        percentages = recompute_percentages(holdings, pool)

        assert pool == Decimal("1000")
        assert percentages == {
            "a": Decimal("10"),
            "b": Decimal("20"),
            "c": Decimal("30"),
            "d": Decimal("40"),
        }
        assert sum(percentages.values()) == Decimal("100")

    def test_zero_pool_has_no_ownership(self):
        assert ownership_percentage(Decimal("50"), Decimal("0")) == Decimal("0")


# ============================================================
# Distribution arithmetic
# ============================================================

class TestRevenueSplit:
    """Tests for payout rounding and residuals."""

    def test_exact_split(self):
        payouts, residual = split_revenue(
            Decimal("100"),
            {"u1": Decimal("60"), "u2": Decimal("25"), "u3": Decimal("15")},
        )

        assert payouts == {"u1": Decimal("60.00"), "u2": Decimal("25.00"), "u3": Decimal("15.00")}
        assert sum(payouts.values()) == Decimal("100.00")
        assert residual == Decimal("0")

    def test_fractional_cents_leave_residual(self):
        percentages = {"u1": Decimal("33.33"), "u2": Decimal("33.33"), "u3": Decimal("33.34")}
        payouts, residual = split_revenue(Decimal("1"), percentages)

        assert payouts["u1"] == Decimal("0.33")
        assert payouts["u3"] == Decimal("0.33")
        assert abs(residual) <= Decimal("0.01") * len(percentages)
        assert sum(payouts.values()) + residual == Decimal("1")

    def test_rounds_half_up(self):
        # 10 * 0.05% = 0.005
        assert payout_amount(Decimal("10"), Decimal("0.05")) == Decimal("0.01")

    def test_partial_pool_pays_partial_revenue(self):
        payouts, _ = split_revenue(Decimal("200"), {"u1": Decimal("10"), "u2": Decimal("20")})

        assert sum(payouts.values()) == Decimal("60.00")


# ============================================================
# Preview estimate
# ============================================================

class TestOwnershipPreview:
    """The preview is a different, advisory formula."""

    def test_available_to_invest(self):
        assert available_to_invest(Decimal("1000"), [Decimal("200")]) == Decimal("800")

    def test_available_never_negative(self):
        assert available_to_invest(Decimal("100"), [Decimal("150")]) == Decimal("0")

    def test_estimate_formula(self):
        # 300 / (800 + 300) * 100
        assert estimate_ownership_percentage(Decimal("800"), Decimal("300")) == Decimal("27.27")

    def test_estimate_differs_from_settlement(self):
        estimate = estimate_ownership_percentage(Decimal("800"), Decimal("300"))
        plan = plan_settlement(Decimal("1000"), {"alice": Decimal("200")}, "bob", Decimal("300"))

        assert estimate != plan.investor_percentage.quantize(Decimal("0.01"))

    def test_estimate_for_non_positive_amount(self):
        assert estimate_ownership_percentage(Decimal("800"), Decimal("0")) == Decimal("0.00")
