"""
Module: ledger_kernel.selectors.metrics_selector
Responsibility: Company-level figures the alert rules are evaluated
    against: current-month income and expenses, overall balance and open
    payments.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Cancelled transactions never count.
    - "Month" is the calendar month containing ``as_of``.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import LedgerMetrics, OpenPayment
from ledger_kernel.models.payment import Payment, PaymentStatus
from ledger_kernel.models.transaction import (
    LedgerTransaction,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.selectors.base import BaseSelector

_OPEN_STATUSES = [PaymentStatus.PENDING, PaymentStatus.PARTIAL, PaymentStatus.OVERDUE]


def month_bounds(as_of: date) -> tuple[date, date]:
    """[first day of the month, first day of the next month)."""
    start = as_of.replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


class LedgerMetricsSelector(BaseSelector):

    def _sum(self, tx_type: TransactionType, start: date | None = None, end: date | None = None) -> Decimal:
        # Summed in Python: SQLite would add Numeric values as floats.
        stmt = select(LedgerTransaction.amount).where(
            LedgerTransaction.company_id == self.company_id,
            LedgerTransaction.type == tx_type,
            LedgerTransaction.status != TransactionStatus.CANCELLED,
        )
        if start is not None:
            stmt = stmt.where(LedgerTransaction.date >= start)
        if end is not None:
            stmt = stmt.where(LedgerTransaction.date < end)
        return sum(self.session.execute(stmt).scalars().all(), ZERO)

    def monthly_income(self, as_of: date) -> Decimal:
        start, end = month_bounds(as_of)
        return round_money(self._sum(TransactionType.INCOME, start, end))

    def monthly_expenses(self, as_of: date) -> Decimal:
        start, end = month_bounds(as_of)
        return round_money(self._sum(TransactionType.EXPENSE, start, end))

    def total_balance(self) -> Decimal:
        income = self._sum(TransactionType.INCOME)
        expense = self._sum(TransactionType.EXPENSE)
        return round_money(income - expense)

    def open_payments(self) -> tuple[OpenPayment, ...]:
        stmt = (
            select(Payment.id, Payment.amount, Payment.due_date, Payment.status)
            .where(
                Payment.company_id == self.company_id,
                Payment.status.in_(_OPEN_STATUSES),
            )
            .order_by(Payment.due_date, Payment.id)
        )
        return tuple(
            OpenPayment(
                payment_id=row.id,
                amount=row.amount,
                due_date=row.due_date,
                status=row.status,
            )
            for row in self.session.execute(stmt).all()
        )

    def snapshot(self, as_of: date) -> LedgerMetrics:
        return LedgerMetrics(
            company_id=self.company_id,
            as_of=as_of,
            monthly_income=self.monthly_income(as_of),
            monthly_expenses=self.monthly_expenses(as_of),
            total_balance=self.total_balance(),
            open_payments=self.open_payments(),
        )
