"""
ledger_engines.balance -- Provider share and balance calculation.

Responsibility:
    Derive what a service provider has earned from missions and what is
    still owed to them, from plain values handed in by the selector layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only approved missions contribute to ``earned``; unapproved missions
      feed ``pending`` only.
    - A primary provider receives the whole ``provider_value``.  A provider
      that is only in the assigned list receives ``provider_value / N``
      where N counts every assigned provider, primary included when
      listed.  This is the observed business behaviour and is kept as is.
    - Decimal arithmetic throughout; results are rounded once, at the end,
      with ``round_money``.
    - Same inputs always give the same outputs (recomputation is
      idempotent).

Failure modes:
    - None.  A provider on zero missions has a balance of 0.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import ZERO, round_money


@dataclass(frozen=True)
class MissionShareInput:
    """The parts of a mission that decide one provider's share."""

    mission_id: UUID
    is_approved: bool
    provider_value: Decimal | None
    primary_provider_id: UUID | None
    assigned_provider_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class BalanceComputation:
    provider_id: UUID
    earned: Decimal
    paid: Decimal
    pending: Decimal
    approved_mission_count: int
    pending_mission_count: int

    @property
    def current(self) -> Decimal:
        return self.earned - self.paid


def provider_share(provider_id: UUID, mission: MissionShareInput) -> Decimal:
    """Unrounded share of ``mission.provider_value`` owed to ``provider_id``."""
    value = mission.provider_value or ZERO
    if mission.primary_provider_id == provider_id:
        return value
    if provider_id in mission.assigned_provider_ids:
        return value / Decimal(len(mission.assigned_provider_ids))
    return ZERO


class BalanceCalculator:
    """
    Pure provider balance calculator.

    Contract:
        ``missions`` may include missions the provider is not on; they add
        nothing.  ``completed_payments`` are the amounts already paid to the
        provider and must not include payments that were themselves
        liquidated by a balance payment (the caller filters those out).
    """

    @traced_engine("provider_balance", "1.0", fingerprint_fields=("provider_id", "missions", "completed_payments"))
    def compute(
        self,
        *,
        provider_id: UUID,
        missions: Sequence[MissionShareInput],
        completed_payments: Sequence[Decimal],
    ) -> BalanceComputation:
        earned = ZERO
        pending = ZERO
        approved = 0
        unapproved = 0

        for mission in missions:
            share = provider_share(provider_id, mission)
            if mission.is_approved:
                earned += share
                approved += 1
            else:
                pending += share
                unapproved += 1

        paid = sum(completed_payments, ZERO)

        return BalanceComputation(
            provider_id=provider_id,
            earned=round_money(earned),
            paid=round_money(paid),
            pending=round_money(pending),
            approved_mission_count=approved,
            pending_mission_count=unapproved,
        )

    def available(self, computation: BalanceComputation, marked_as_received: Decimal) -> Decimal:
        """What can still be paid out: never negative."""
        remaining = computation.earned - computation.paid - marked_as_received
        return round_money(max(ZERO, remaining))
