"""
Module: ledger_kernel.services.revenue_service
Responsibility: Revenue confirmation workflow.  A pending revenue (a mission
    billed to a client) moves exactly once to CONFIRMED, booking an income
    transaction, or to CANCELLED.
Architecture position: Kernel > Services.

Invariants enforced:
    - company_amount + provider_amount == total_amount within epsilon,
      checked at creation only; confirmation copies the stored split.
    - PENDING -> CONFIRMED and PENDING -> CANCELLED are the only
      transitions.  Both targets are terminal.
    - Confirmation is one atomic step: the income transaction, the
      confirmed row and the status change of the pending row commit
      together or not at all.

Failure modes:
    - MissionNotFoundError / PendingRevenueNotFoundError outside the tenant.
    - RevenueSplitMismatchError, NonPositiveAmountError, MissingFieldError.
    - RevenueAlreadyFinalizedError when the row is no longer pending.
    - StoreError on database failure (rolled back).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import MONEY_EPSILON, amounts_match
from ledger_kernel.domain.dtos import (
    AccessLevel,
    ConfirmedRevenueInfo,
    PendingRevenueInfo,
    RevenueConfirmation,
)
from ledger_kernel.exceptions import (
    MissingFieldError,
    PendingRevenueNotFoundError,
    RevenueAlreadyFinalizedError,
    RevenueSplitMismatchError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.provider import PaymentMethod
from ledger_kernel.models.revenue import (
    ConfirmedRevenue,
    PendingRevenue,
    PendingRevenueStatus,
)
from ledger_kernel.models.transaction import (
    AccountType,
    LedgerTransaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.selectors.revenue_selector import (
    RevenueSelector,
    to_confirmed_info,
    to_pending_info,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.revenue")


class RevenueService(BaseService):

    def __init__(self, *args, epsilon: Decimal = MONEY_EPSILON, **kwargs):
        super().__init__(*args, **kwargs)
        self.epsilon = epsilon

    def create_pending_revenue(
        self,
        mission_id: UUID,
        client_name: str,
        total_amount,
        company_amount,
        provider_amount,
        due_date: date,
        description: str | None = None,
    ) -> PendingRevenueInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        name = self._required_text("client_name", client_name)
        total = self._positive_amount("total_amount", total_amount)
        company = self._positive_amount("company_amount", company_amount)
        provider = self._positive_amount("provider_amount", provider_amount)
        if due_date is None:
            raise MissingFieldError("due_date")
        if not amounts_match(company + provider, total, self.epsilon):
            raise RevenueSplitMismatchError(str(total), str(company), str(provider))

        row = self.store.insert(
            PendingRevenue,
            {
                "mission_id": mission_id,
                "client_name": name,
                "description": description,
                "total_amount": total,
                "company_amount": company,
                "provider_amount": provider,
                "due_date": due_date,
                "status": PendingRevenueStatus.PENDING,
            },
        )
        logger.info(
            "pending_revenue_created",
            extra={"pending_revenue_id": str(row.id), "mission_id": str(mission_id), "total_amount": total},
        )
        return to_pending_info(row)

    def _open_pending(self, pending_revenue_id: UUID) -> PendingRevenue:
        row = self.store.get(
            PendingRevenue,
            pending_revenue_id,
            PendingRevenueNotFoundError,
            for_update=True,
        )
        if row.status != PendingRevenueStatus.PENDING:
            raise RevenueAlreadyFinalizedError(str(pending_revenue_id), row.status.value)
        return row

    def confirm_revenue(
        self,
        pending_revenue_id: UUID,
        account_id: UUID,
        account_type: AccountType,
        payment_method: PaymentMethod,
    ) -> RevenueConfirmation:
        """
        Confirm that the client paid.

        Books an income transaction for ``total_amount`` on the mission,
        writes the confirmed row with ``received_date = now`` and takes the
        pending row out of the pending listing.
        """
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        if account_id is None:
            raise MissingFieldError("account_id")
        account_type = AccountType(account_type)
        method = PaymentMethod(payment_method)

        with self.store.atomic("confirm_revenue"):
            pending = self._open_pending(pending_revenue_id)
            now = self.clock.now()

            transaction = self.store.insert(
                LedgerTransaction,
                {
                    "type": TransactionType.INCOME,
                    "category": TransactionCategory.CLIENT_PAYMENT,
                    "amount": pending.total_amount,
                    "description": f"Revenue from {pending.client_name}",
                    "date": self.clock.today(),
                    "status": TransactionStatus.COMPLETED,
                    "method": method,
                    "mission_id": pending.mission_id,
                    "account_id": account_id,
                    "account_type": account_type,
                    "user_id": self.tenant.profile_id,
                },
            )
            confirmed = self.store.insert(
                ConfirmedRevenue,
                {
                    "mission_id": pending.mission_id,
                    "pending_revenue_id": pending.id,
                    "client_name": pending.client_name,
                    "description": pending.description,
                    "total_amount": pending.total_amount,
                    "company_amount": pending.company_amount,
                    "provider_amount": pending.provider_amount,
                    "received_date": now,
                    "payment_method": method.value,
                    "account_id": account_id,
                    "account_type": account_type,
                    "transaction_id": transaction.id,
                },
            )
            pending.status = PendingRevenueStatus.CONFIRMED
            pending.received_at = now
            pending.confirmed_revenue_id = confirmed.id
            self.session.flush()

        logger.info(
            "revenue_confirmed",
            extra={
                "pending_revenue_id": str(pending.id),
                "confirmed_revenue_id": str(confirmed.id),
                "transaction_id": str(transaction.id),
                "total_amount": pending.total_amount,
            },
        )
        return RevenueConfirmation(
            pending=to_pending_info(pending),
            confirmed=to_confirmed_info(confirmed),
            transaction_id=transaction.id,
        )

    def cancel_revenue(self, pending_revenue_id: UUID) -> PendingRevenueInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        with self.store.atomic("cancel_revenue"):
            pending = self._open_pending(pending_revenue_id)
            pending.status = PendingRevenueStatus.CANCELLED
            self.session.flush()
        logger.info("revenue_cancelled", extra={"pending_revenue_id": str(pending_revenue_id)})
        return to_pending_info(pending)

    def pending_revenues(self, mission_id: UUID | None = None) -> list[PendingRevenueInfo]:
        return RevenueSelector(self.session, self.tenant.company_id).pending_revenues(mission_id)

    def confirmed_revenues(self, mission_id: UUID | None = None) -> list[ConfirmedRevenueInfo]:
        return RevenueSelector(self.session, self.tenant.company_id).confirmed_revenues(mission_id)
