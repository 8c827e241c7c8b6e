"""
Module: ledger_kernel.models.expense
Responsibility: ORM persistence for expenses incurred on a mission (travel,
    fuel, materials) and their reimbursement state.

Invariants enforced:
    - An expense has no company column of its own.  Its tenant is the
      company of its mission (``__tenant_via__``), and the isolation guard
      computes ownership through that link.
    - Status moves pending -> approved -> reimbursed only.  Reimbursement
      books exactly one expense transaction.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import EnumString, TrackedBase, UUIDString
from ledger_kernel.models.mission import Mission
from ledger_kernel.models.transaction import TransactionCategory


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REIMBURSED = "reimbursed"


class Expense(TrackedBase):
    """Money spent by an employee or provider on behalf of a mission."""

    __tablename__ = "expenses"

    __tenant_via__ = "mission"

    mission_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("missions.id"),
        nullable=False,
        index=True,
    )

    employee_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    employee_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    category: Mapped[TransactionCategory] = mapped_column(
        EnumString(TransactionCategory),
        nullable=False,
        default=TransactionCategory.OTHER,
    )

    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    is_advanced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[ExpenseStatus] = mapped_column(
        EnumString(ExpenseStatus),
        nullable=False,
        default=ExpenseStatus.PENDING,
    )

    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
    )

    mission: Mapped[Mission] = relationship(lazy="joined", innerjoin=True)

    def __repr__(self) -> str:
        return f"<Expense {self.category.value} {self.amount} ({self.status.value})>"
