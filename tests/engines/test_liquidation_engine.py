"""
Tests for the oldest-first liquidation planner.

Covers:
- Automatic path: whole obligations only, stop at the first that does not fit
- Manual path: exact match within epsilon settles everything
- Ordering and tie-breaking
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ledger_engines.liquidation import LiquidationPlanner, OpenObligation


def _ob(amount: str, due: date, payment_id: UUID | None = None) -> OpenObligation:
    return OpenObligation(payment_id=payment_id or uuid4(), amount=Decimal(amount), due_date=due)


class TestAutomaticPlan:
    """LiquidationPlanner.plan."""

    def test_stops_at_first_obligation_that_does_not_fit(self):
        """1200 covers the 500 due in January, not the 800 due in February."""
        jan = _ob("500", date(2024, 1, 1))
        feb = _ob("800", date(2024, 2, 1))
        plan = LiquidationPlanner().plan(amount=Decimal("1200"), obligations=[feb, jan])

        assert plan.selected == (jan,)
        assert plan.selected_total == Decimal("500")
        assert plan.remainder == Decimal("700")
        assert plan.pending_total == Decimal("1300")
        assert plan.fully_settled is False

    def test_does_not_skip_ahead_to_smaller_obligation(self):
        """A later small obligation is not taken once a larger one blocks."""
        first = _ob("900", date(2024, 1, 1))
        second = _ob("50", date(2024, 2, 1))
        plan = LiquidationPlanner().plan(amount=Decimal("100"), obligations=[first, second])
        assert plan.selected == ()

    def test_exact_amount_is_fully_settled(self):
        """Covering every obligation exactly is a full settlement."""
        obs = [_ob("500", date(2024, 1, 1)), _ob("800", date(2024, 2, 1))]
        plan = LiquidationPlanner().plan(amount=Decimal("1300"), obligations=obs)
        assert len(plan.selected) == 2
        assert plan.fully_settled is True

    def test_overpayment_selects_all_but_is_not_fully_settled(self):
        """Paying more than pending leaves a positive remainder."""
        obs = [_ob("100", date(2024, 1, 1))]
        plan = LiquidationPlanner().plan(amount=Decimal("150"), obligations=obs)
        assert len(plan.selected) == 1
        assert plan.remainder == Decimal("50")
        assert plan.fully_settled is False

    def test_ties_on_due_date_break_by_payment_id(self):
        """Same due date orders by payment id so plans repeat exactly."""
        low = _ob("10", date(2024, 1, 1), UUID(int=1))
        high = _ob("10", date(2024, 1, 1), UUID(int=2))
        plan = LiquidationPlanner().plan(amount=Decimal("10"), obligations=[high, low])
        assert plan.selected == (low,)

    def test_no_obligations(self):
        """Nothing open means nothing selected."""
        plan = LiquidationPlanner().plan(amount=Decimal("10"), obligations=[])
        assert plan.selected == ()
        assert plan.difference == Decimal("10")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_rejects_non_positive_amount(self, amount):
        """Amount must be positive."""
        with pytest.raises(ValueError):
            LiquidationPlanner().plan(amount=amount, obligations=[])


class TestManualSettlementPlan:
    """LiquidationPlanner.plan_settlement."""

    def test_matching_total_settles_everything(self):
        """1300 against 500 + 800 completes both."""
        obs = [_ob("500", date(2024, 1, 1)), _ob("800", date(2024, 2, 1))]
        plan = LiquidationPlanner().plan_settlement(amount=Decimal("1300"), obligations=obs)
        assert len(plan.selected) == 2
        assert plan.fully_settled is True
        assert plan.difference == Decimal("0")

    def test_match_within_epsilon(self):
        """A one-cent difference still counts as a match."""
        obs = [_ob("500.00", date(2024, 1, 1)), _ob("800.00", date(2024, 2, 1))]
        plan = LiquidationPlanner().plan_settlement(amount=Decimal("1299.99"), obligations=obs)
        assert len(plan.selected) == 2
        assert plan.fully_settled is True

    def test_mismatch_falls_back_to_oldest_first(self):
        """A short amount settles what fits and reports the difference."""
        obs = [_ob("500", date(2024, 1, 1)), _ob("800", date(2024, 2, 1))]
        plan = LiquidationPlanner().plan_settlement(amount=Decimal("600"), obligations=obs)
        assert [o.amount for o in plan.selected] == [Decimal("500")]
        assert plan.difference == Decimal("-700")
        assert plan.fully_settled is False

    def test_custom_epsilon(self):
        """A wider epsilon accepts a wider gap."""
        obs = [_ob("100", date(2024, 1, 1))]
        plan = LiquidationPlanner(Decimal("1")).plan_settlement(amount=Decimal("99.5"), obligations=obs)
        assert plan.fully_settled is True
