"""
Module: ledger_kernel.models.payment
Responsibility: ORM persistence for money the company owes (or has paid) to
    a service provider.

Invariants enforced:
    - A payment reaches COMPLETED at most once; COMPLETED and CANCELLED are
      terminal.
    - ``provider_id`` is kept as the raw reference string supplied by the
      writer.  It is NOT a foreign key: imported or legacy rows may carry an
      empty or dangling reference, and those rows are exactly what orphan
      repair looks for.  A row is healthy only when the string parses as a
      UUID of a provider in the same company.
    - Rows liquidated by a balance/advance payment point at it through
      ``settled_by_payment_id`` so the same money is not counted as paid
      twice.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import EnumString, TenantOwned, TrackedBase, UUIDString
from ledger_kernel.models.transaction import AccountType


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    FULL = "full"
    INSTALLMENT = "installment"
    ADVANCE = "advance"
    BALANCE_PAYMENT = "balance_payment"
    ADVANCE_PAYMENT = "advance_payment"


# Recording one of these liquidates the provider's open obligations.
LIQUIDATING_TYPES: frozenset[PaymentType] = frozenset(
    {PaymentType.BALANCE_PAYMENT, PaymentType.ADVANCE_PAYMENT}
)

# Statuses a settlement pass may move to COMPLETED.
SETTLEABLE_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PENDING, PaymentStatus.PARTIAL}
)

TERMINAL_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.CANCELLED}
)


class Payment(TenantOwned, TrackedBase):
    """An obligation toward, or a transfer to, one service provider."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_company_provider_status", "company_id", "provider_id", "status"),
        Index("idx_payment_due_date", "due_date"),
    )

    provider_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    provider_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    type: Mapped[PaymentType] = mapped_column(
        EnumString(PaymentType),
        nullable=False,
        default=PaymentType.FULL,
    )

    status: Mapped[PaymentStatus] = mapped_column(
        EnumString(PaymentStatus),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    installments: Mapped[int | None] = mapped_column(Integer, nullable=True)

    current_installment: Mapped[int | None] = mapped_column(Integer, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_type: Mapped[AccountType | None] = mapped_column(
        EnumString(AccountType),
        nullable=True,
    )

    settled_by_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    @property
    def is_open(self) -> bool:
        return self.status in SETTLEABLE_STATUSES

    def __repr__(self) -> str:
        return f"<Payment {self.amount} {self.type.value} {self.status.value}>"
