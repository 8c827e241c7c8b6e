"""
Tests for the pure provider balance calculator.

Covers:
- Primary vs. assigned shares
- Approved vs. unapproved missions
- Paid amounts and the never-negative available figure
- Determinism of recomputation
"""

from decimal import Decimal
from uuid import uuid4

from ledger_engines.balance import BalanceCalculator, MissionShareInput, provider_share


def _mission(provider_value, primary=None, assigned=(), approved=True):
    return MissionShareInput(
        mission_id=uuid4(),
        is_approved=approved,
        provider_value=Decimal(provider_value) if provider_value is not None else None,
        primary_provider_id=primary,
        assigned_provider_ids=tuple(assigned),
    )


class TestProviderShare:
    """Share of one mission's provider value."""

    def test_primary_takes_whole_value(self):
        """The primary provider receives the whole provider value."""
        p = uuid4()
        assert provider_share(p, _mission("1000", primary=p)) == Decimal("1000")

    def test_secondary_splits_by_assigned_count(self):
        """An assigned provider receives value / number of assigned providers."""
        p, other = uuid4(), uuid4()
        assert provider_share(p, _mission("1000", assigned=(p, other))) == Decimal("500")

    def test_primary_wins_over_assignment(self):
        """A primary provider who is also listed still gets the whole value."""
        p, other = uuid4(), uuid4()
        assert provider_share(p, _mission("900", primary=p, assigned=(p, other))) == Decimal("900")

    def test_unrelated_provider_gets_nothing(self):
        """A provider not on the mission has a zero share."""
        assert provider_share(uuid4(), _mission("1000", primary=uuid4())) == Decimal("0")

    def test_missing_value_counts_as_zero(self):
        """A mission without a provider value contributes zero."""
        p = uuid4()
        assert provider_share(p, _mission(None, primary=p)) == Decimal("0")


class TestBalanceCalculator:
    """BalanceCalculator.compute."""

    def test_primary_plus_secondary_share(self):
        """1000 as primary plus half of 1000 as secondary is 1500."""
        p, other = uuid4(), uuid4()
        result = BalanceCalculator().compute(
            provider_id=p,
            missions=[_mission("1000", primary=p), _mission("1000", assigned=(p, other))],
            completed_payments=[],
        )
        assert result.earned == Decimal("1500.00")
        assert result.current == Decimal("1500.00")
        assert result.approved_mission_count == 2

    def test_unapproved_missions_only_feed_pending(self):
        """Unapproved missions go to pending, not earned."""
        p = uuid4()
        result = BalanceCalculator().compute(
            provider_id=p,
            missions=[_mission("1000", primary=p), _mission("400", primary=p, approved=False)],
            completed_payments=[],
        )
        assert result.earned == Decimal("1000.00")
        assert result.pending == Decimal("400.00")
        assert result.pending_mission_count == 1

    def test_completed_payments_reduce_current(self):
        """Current balance is earned minus paid."""
        p = uuid4()
        result = BalanceCalculator().compute(
            provider_id=p,
            missions=[_mission("1000", primary=p)],
            completed_payments=[Decimal("300"), Decimal("200.50")],
        )
        assert result.paid == Decimal("500.50")
        assert result.current == Decimal("499.50")

    def test_no_missions_is_zero(self):
        """A provider on no missions has a zero balance."""
        result = BalanceCalculator().compute(provider_id=uuid4(), missions=[], completed_payments=[])
        assert result.current == Decimal("0.00")

    def test_three_way_split_rounds_once(self):
        """Shares are rounded at the end, not per mission."""
        p, q, r = uuid4(), uuid4(), uuid4()
        missions = [_mission("100", assigned=(p, q, r)) for _ in range(3)]
        result = BalanceCalculator().compute(provider_id=p, missions=missions, completed_payments=[])
        assert result.earned == Decimal("100.00")

    def test_available_is_never_negative(self):
        """Available floors at zero when more was received than earned."""
        p = uuid4()
        calc = BalanceCalculator()
        result = calc.compute(provider_id=p, missions=[_mission("100", primary=p)], completed_payments=[])
        assert calc.available(result, Decimal("250")) == Decimal("0.00")
        assert calc.available(result, Decimal("40")) == Decimal("60.00")

    def test_recompute_is_deterministic(self):
        """Same inputs give the same result."""
        p = uuid4()
        missions = [_mission("333.33", primary=p), _mission("10", assigned=(p, uuid4()))]
        calc = BalanceCalculator()
        first = calc.compute(provider_id=p, missions=missions, completed_payments=[Decimal("1")])
        second = calc.compute(provider_id=p, missions=missions, completed_payments=[Decimal("1")])
        assert first == second
