"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for the canonical ledger entry.  Every
    confirmed revenue and every reimbursed expense ends up as exactly one
    LedgerTransaction.

Invariants enforced:
    - ``amount`` is always positive; direction comes from ``type``.
    - Cancelled transactions never count toward any balance or metric.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import EnumString, TenantOwned, TrackedBase, UUIDString
from ledger_kernel.models.provider import PaymentMethod


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionCategory(str, Enum):
    """Closed category set shared by transactions and expenses."""

    SERVICE_PAYMENT = "service_payment"
    CLIENT_PAYMENT = "client_payment"
    FUEL = "fuel"
    ACCOMMODATION = "accommodation"
    MEALS = "meals"
    MATERIALS = "materials"
    MAINTENANCE = "maintenance"
    OFFICE_EXPENSE = "office_expense"
    OTHER = "other"


class AccountType(str, Enum):
    """Kind of company account a movement is booked against."""

    BANK_ACCOUNT = "bank_account"
    CREDIT_CARD = "credit_card"


class LedgerTransaction(TenantOwned, TrackedBase):
    """A single income or expense movement of a company."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_company_date", "company_id", "date"),
    )

    type: Mapped[TransactionType] = mapped_column(
        EnumString(TransactionType),
        nullable=False,
    )

    category: Mapped[TransactionCategory] = mapped_column(
        EnumString(TransactionCategory),
        nullable=False,
        default=TransactionCategory.OTHER,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    status: Mapped[TransactionStatus] = mapped_column(
        EnumString(TransactionStatus),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )

    method: Mapped[PaymentMethod | None] = mapped_column(
        EnumString(PaymentMethod),
        nullable=True,
    )

    mission_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("missions.id"),
        nullable=True,
        index=True,
    )

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_type: Mapped[AccountType | None] = mapped_column(
        EnumString(AccountType),
        nullable=True,
    )

    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    def __repr__(self) -> str:
        return f"<LedgerTransaction {self.type.value} {self.amount} on {self.date}>"
