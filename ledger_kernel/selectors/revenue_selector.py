"""
Module: ledger_kernel.selectors.revenue_selector
Responsibility: Pending and confirmed revenue listings for one company.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The pending listing shows only rows still in PENDING; confirmed and
      cancelled revenue never appear in it.
"""

from uuid import UUID

from ledger_kernel.domain.dtos import ConfirmedRevenueInfo, PendingRevenueInfo
from ledger_kernel.models.revenue import (
    ConfirmedRevenue,
    PendingRevenue,
    PendingRevenueStatus,
)
from ledger_kernel.selectors.base import BaseSelector


def to_pending_info(row: PendingRevenue) -> PendingRevenueInfo:
    return PendingRevenueInfo(
        id=row.id,
        mission_id=row.mission_id,
        client_name=row.client_name,
        total_amount=row.total_amount,
        company_amount=row.company_amount,
        provider_amount=row.provider_amount,
        due_date=row.due_date,
        status=row.status,
        confirmed_revenue_id=row.confirmed_revenue_id,
    )


def to_confirmed_info(row: ConfirmedRevenue) -> ConfirmedRevenueInfo:
    return ConfirmedRevenueInfo(
        id=row.id,
        mission_id=row.mission_id,
        pending_revenue_id=row.pending_revenue_id,
        client_name=row.client_name,
        total_amount=row.total_amount,
        company_amount=row.company_amount,
        provider_amount=row.provider_amount,
        received_date=row.received_date,
        payment_method=row.payment_method,
        account_id=row.account_id,
        account_type=row.account_type,
        transaction_id=row.transaction_id,
    )


class RevenueSelector(BaseSelector):

    def pending_revenues(self, mission_id: UUID | None = None) -> list[PendingRevenueInfo]:
        stmt = self._select(PendingRevenue).where(
            PendingRevenue.status == PendingRevenueStatus.PENDING
        )
        if mission_id is not None:
            stmt = stmt.where(PendingRevenue.mission_id == mission_id)
        stmt = stmt.order_by(PendingRevenue.due_date, PendingRevenue.id)
        return [to_pending_info(r) for r in self.session.execute(stmt).scalars().all()]

    def confirmed_revenues(self, mission_id: UUID | None = None) -> list[ConfirmedRevenueInfo]:
        stmt = self._select(ConfirmedRevenue)
        if mission_id is not None:
            stmt = stmt.where(ConfirmedRevenue.mission_id == mission_id)
        stmt = stmt.order_by(ConfirmedRevenue.received_date, ConfirmedRevenue.id)
        return [to_confirmed_info(r) for r in self.session.execute(stmt).scalars().all()]
