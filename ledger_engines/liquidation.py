"""
ledger_engines.liquidation -- Oldest-first liquidation planning.

Responsibility:
    Decide which open payment obligations a provider payment covers.  The
    settlement service applies the plan; this module never touches a row.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Obligations are taken in due-date order (payment id breaks ties so the
      order is total and repeatable).
    - Automatic liquidation stops at the first obligation that does not fit
      in what is left of the amount; an obligation is either fully covered
      or untouched, never split.
    - The selected total never exceeds the supplied amount in the automatic
      path.  In the manual path, an amount equal to the pending total within
      epsilon selects every obligation.

Failure modes:
    - ValueError if the amount is not positive.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import MONEY_EPSILON, ZERO, amounts_match


@dataclass(frozen=True)
class OpenObligation:
    payment_id: UUID
    amount: Decimal
    due_date: date


@dataclass(frozen=True)
class LiquidationPlan:
    amount: Decimal
    selected: tuple[OpenObligation, ...]
    pending_total: Decimal
    fully_settled: bool = False

    @property
    def selected_total(self) -> Decimal:
        return sum((o.amount for o in self.selected), ZERO)

    @property
    def remainder(self) -> Decimal:
        return self.amount - self.selected_total

    @property
    def difference(self) -> Decimal:
        return self.amount - self.pending_total


def _oldest_first(obligations: Sequence[OpenObligation]) -> list[OpenObligation]:
    return sorted(obligations, key=lambda o: (o.due_date, str(o.payment_id)))


class LiquidationPlanner:
    """
    Plans which obligations a payment of a given amount liquidates.

    Contract:
        Pure; callers pass the provider's open obligations only (pending or
        partial, excluding balance/advance payments themselves).
    """

    def __init__(self, epsilon: Decimal = MONEY_EPSILON):
        self.epsilon = epsilon

    @traced_engine("liquidation", "1.0", fingerprint_fields=("amount", "obligations"))
    def plan(
        self,
        *,
        amount: Decimal,
        obligations: Sequence[OpenObligation],
    ) -> LiquidationPlan:
        """Automatic path: cover whole obligations oldest first, stop at the first that does not fit."""
        if amount <= ZERO:
            raise ValueError(f"Liquidation amount must be positive, got {amount}")

        ordered = _oldest_first(obligations)
        pending_total = sum((o.amount for o in ordered), ZERO)

        selected: list[OpenObligation] = []
        running = ZERO
        for obligation in ordered:
            if running + obligation.amount > amount:
                break
            running += obligation.amount
            selected.append(obligation)

        return LiquidationPlan(
            amount=amount,
            selected=tuple(selected),
            pending_total=pending_total,
            fully_settled=(
                len(selected) == len(ordered)
                and amounts_match(amount, pending_total, self.epsilon)
            ),
        )

    @traced_engine("settlement", "1.0", fingerprint_fields=("amount", "obligations"))
    def plan_settlement(
        self,
        *,
        amount: Decimal,
        obligations: Sequence[OpenObligation],
    ) -> LiquidationPlan:
        """
        Manual path.

        When ``amount`` matches the pending total within epsilon every
        obligation is settled.  Otherwise it falls back to the automatic
        oldest-first plan and the caller reports the signed difference.
        """
        if amount <= ZERO:
            raise ValueError(f"Settlement amount must be positive, got {amount}")

        ordered = _oldest_first(obligations)
        pending_total = sum((o.amount for o in ordered), ZERO)

        if ordered and amounts_match(amount, pending_total, self.epsilon):
            return LiquidationPlan(
                amount=amount,
                selected=tuple(ordered),
                pending_total=pending_total,
                fully_settled=True,
            )

        partial = self.plan(amount=amount, obligations=ordered)
        return LiquidationPlan(
            amount=amount,
            selected=partial.selected,
            pending_total=pending_total,
            fully_settled=False,
        )
