"""
Service layer for mission expenses.

    pending --approve--> approved --reimburse--> reimbursed

Reimbursement books one ``expense`` transaction tagged with the mission and
adds the amount to the mission's running ``total_expenses``; both happen in
one atomic step with the status change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import AccessLevel
from ledger_kernel.exceptions import (
    ExpenseNotFoundError,
    InvalidExpenseTransitionError,
    MissingFieldError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.expense import Expense, ExpenseStatus
from ledger_kernel.models.transaction import (
    LedgerTransaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.expense")


@dataclass(frozen=True)
class ExpenseInfo:
    id: UUID
    mission_id: UUID
    employee_id: UUID | None
    category: TransactionCategory
    amount: Decimal
    invoice_amount: Decimal | None
    date: date
    is_advanced: bool
    status: ExpenseStatus
    transaction_id: UUID | None


class ExpenseService(BaseService):

    def _to_dto(self, expense: Expense) -> ExpenseInfo:
        return ExpenseInfo(
            id=expense.id,
            mission_id=expense.mission_id,
            employee_id=expense.employee_id,
            category=expense.category,
            amount=expense.amount,
            invoice_amount=expense.invoice_amount,
            date=expense.date,
            is_advanced=expense.is_advanced,
            status=expense.status,
            transaction_id=expense.transaction_id,
        )

    def _transition(self, expense_id: UUID, source: ExpenseStatus, target: ExpenseStatus) -> Expense:
        expense = self.store.get(Expense, expense_id, ExpenseNotFoundError, for_update=True)
        if expense.status != source:
            raise InvalidExpenseTransitionError(str(expense_id), expense.status.value, target.value)
        expense.status = target
        return expense

    def create_expense(
        self,
        mission_id: UUID,
        category: TransactionCategory,
        amount,
        expense_date: date,
        description: str = "",
        employee_id: UUID | None = None,
        employee_name: str = "",
        invoice_amount=None,
        is_advanced: bool = False,
    ) -> ExpenseInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        value = self._positive_amount("amount", amount)
        if expense_date is None:
            raise MissingFieldError("date")
        invoice = (
            self._positive_amount("invoice_amount", invoice_amount)
            if invoice_amount is not None
            else None
        )
        expense = self.store.insert(
            Expense,
            {
                "mission_id": mission_id,
                "employee_id": employee_id or self.tenant.profile_id,
                "employee_name": employee_name,
                "category": TransactionCategory(category),
                "description": description,
                "amount": value,
                "invoice_amount": invoice,
                "date": expense_date,
                "is_advanced": is_advanced,
                "status": ExpenseStatus.PENDING,
            },
        )
        logger.info(
            "expense_created",
            extra={"expense_id": str(expense.id), "mission_id": str(mission_id), "amount": value},
        )
        return self._to_dto(expense)

    def approve_expense(self, expense_id: UUID) -> ExpenseInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        with self.store.atomic("approve_expense"):
            expense = self._transition(expense_id, ExpenseStatus.PENDING, ExpenseStatus.APPROVED)
            self.session.flush()
        logger.info("expense_approved", extra={"expense_id": str(expense_id)})
        return self._to_dto(expense)

    def reimburse_expense(self, expense_id: UUID) -> ExpenseInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        with self.store.atomic("reimburse_expense"):
            expense = self._transition(expense_id, ExpenseStatus.APPROVED, ExpenseStatus.REIMBURSED)
            transaction = self.store.insert(
                LedgerTransaction,
                {
                    "type": TransactionType.EXPENSE,
                    "category": expense.category,
                    "amount": expense.amount,
                    "description": expense.description or f"Expense reimbursement {expense.id}",
                    "date": self.clock.today(),
                    "status": TransactionStatus.COMPLETED,
                    "mission_id": expense.mission_id,
                    "user_id": expense.employee_id,
                },
            )
            expense.transaction_id = transaction.id
            mission = self.store.get_mission(expense.mission_id)
            mission.total_expenses = (mission.total_expenses or Decimal("0")) + expense.amount
            self.session.flush()

        logger.info(
            "expense_reimbursed",
            extra={
                "expense_id": str(expense_id),
                "transaction_id": str(transaction.id),
                "amount": expense.amount,
            },
        )
        return self._to_dto(expense)

    def list_expenses(self, mission_id: UUID | None = None) -> list[ExpenseInfo]:
        criteria = [Expense.mission_id == mission_id] if mission_id is not None else []
        rows = self.store.list_rows(Expense, *criteria, order_by=(Expense.date, Expense.id))
        return [self._to_dto(e) for e in rows]
