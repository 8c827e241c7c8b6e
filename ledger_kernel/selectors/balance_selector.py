"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Read side of the provider balance calculator.  Loads the
    missions and payments of one provider inside one company and hands them
    to the pure BalanceCalculator.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Balances are always derived live from missions and payments; the
      cached ``ServiceProvider.current_balance`` is never read here.
    - ``paid`` counts completed payments except those liquidated by a
      balance/advance payment, whose money is already counted through the
      liquidating payment itself.
    - Open obligations are pending/partial payments that are not
      themselves liquidating payments.

Failure modes:
    - ProviderNotFoundError if the provider does not exist in the company.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ledger_engines.balance import (
    BalanceCalculator,
    BalanceComputation,
    MissionShareInput,
)
from ledger_engines.liquidation import OpenObligation
from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import ProviderBalance, ProviderBalanceDetails
from ledger_kernel.exceptions import ProviderNotFoundError
from ledger_kernel.models.mission import Mission
from ledger_kernel.models.payment import (
    LIQUIDATING_TYPES,
    SETTLEABLE_STATUSES,
    Payment,
    PaymentStatus,
)
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.selectors.base import BaseSelector


class ProviderBalanceSelector(BaseSelector):
    """Provider balances, computed on demand."""

    def __init__(
        self,
        session: Session,
        company_id: UUID,
        calculator: BalanceCalculator | None = None,
    ):
        super().__init__(session, company_id)
        self.calculator = calculator or BalanceCalculator()

    def get_provider(self, provider_id: UUID) -> ServiceProvider:
        provider = self.session.execute(
            self._select(ServiceProvider).where(ServiceProvider.id == provider_id)
        ).scalar_one_or_none()
        if provider is None:
            raise ProviderNotFoundError(str(provider_id))
        return provider

    def _mission_inputs(self, provider_id: UUID) -> list[MissionShareInput]:
        stmt = self._select(Mission).where(
            or_(
                Mission.provider_id == provider_id,
                Mission.assigned_providers.any(ServiceProvider.id == provider_id),
            )
        )
        missions = self.session.execute(stmt).scalars().all()
        return [
            MissionShareInput(
                mission_id=m.id,
                is_approved=m.is_approved,
                provider_value=m.provider_value,
                primary_provider_id=m.provider_id,
                assigned_provider_ids=m.assigned_provider_ids,
            )
            for m in missions
        ]

    def _paid_amounts(self, provider_id: UUID) -> list[Decimal]:
        stmt = select(Payment.amount).where(
            Payment.company_id == self.company_id,
            Payment.provider_id == str(provider_id),
            Payment.status == PaymentStatus.COMPLETED,
            Payment.settled_by_payment_id.is_(None),
        )
        return list(self.session.execute(stmt).scalars().all())

    def compute(self, provider_id: UUID) -> BalanceComputation:
        self.get_provider(provider_id)
        return self.calculator.compute(
            provider_id=provider_id,
            missions=self._mission_inputs(provider_id),
            completed_payments=self._paid_amounts(provider_id),
        )

    def balance(self, provider_id: UUID) -> ProviderBalance:
        computation = self.compute(provider_id)
        return ProviderBalance(
            provider_id=provider_id,
            current=computation.current,
            pending=computation.pending,
        )

    def current_balance(self, provider_id: UUID) -> Decimal:
        return self.compute(provider_id).current

    def details(self, provider_id: UUID) -> ProviderBalanceDetails:
        provider = self.get_provider(provider_id)
        computation = self.compute(provider_id)
        marked = provider.total_marked_as_received or ZERO
        return ProviderBalanceDetails(
            provider_id=provider_id,
            earned=computation.earned,
            paid=computation.paid,
            marked_as_received=round_money(marked),
            available=self.calculator.available(computation, marked),
            current=computation.current,
            pending=computation.pending,
            approved_mission_count=computation.approved_mission_count,
            pending_mission_count=computation.pending_mission_count,
        )

    def open_obligations(self, provider_id: UUID) -> list[OpenObligation]:
        """Settleable payments for the provider, oldest due first."""
        stmt = (
            select(Payment.id, Payment.amount, Payment.due_date)
            .where(
                Payment.company_id == self.company_id,
                Payment.provider_id == str(provider_id),
                Payment.status.in_(list(SETTLEABLE_STATUSES)),
                Payment.type.not_in(list(LIQUIDATING_TYPES)),
            )
            .order_by(Payment.due_date, Payment.id)
        )
        return [
            OpenObligation(payment_id=row.id, amount=row.amount, due_date=row.due_date)
            for row in self.session.execute(stmt).all()
        ]

    def pending_total(self, provider_id: UUID) -> Decimal:
        self.get_provider(provider_id)
        total = sum((o.amount for o in self.open_obligations(provider_id)), ZERO)
        return round_money(total)
