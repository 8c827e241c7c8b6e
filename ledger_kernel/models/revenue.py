"""
Module: ledger_kernel.models.revenue
Responsibility: ORM persistence for client billing events before
    (PendingRevenue) and after (ConfirmedRevenue) cash is received.

Invariants enforced:
    - company_amount + provider_amount == total_amount within 0.01, checked
      once at creation and trusted afterwards.
    - PendingRevenue.status moves PENDING -> CONFIRMED or PENDING ->
      CANCELLED exactly once; both targets are terminal.
    - A ConfirmedRevenue always references the income transaction created
      with it.
    - Neither table has a company column; the tenant is the mission's.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import EnumString, TrackedBase, UUIDString
from ledger_kernel.models.mission import Mission
from ledger_kernel.models.transaction import AccountType


class PendingRevenueStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PendingRevenue(TrackedBase):
    """A mission billed to a client, cash not yet received."""

    __tablename__ = "pending_revenues"

    __tenant_via__ = "mission"

    mission_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("missions.id"),
        nullable=False,
        index=True,
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    company_amount: Mapped[Decimal] = mapped_column(nullable=False)

    provider_amount: Mapped[Decimal] = mapped_column(nullable=False)

    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PendingRevenueStatus] = mapped_column(
        EnumString(PendingRevenueStatus),
        nullable=False,
        default=PendingRevenueStatus.PENDING,
    )

    received_at: Mapped[datetime | None] = mapped_column(nullable=True)

    confirmed_revenue_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    mission: Mapped[Mission] = relationship(lazy="joined", innerjoin=True)

    def __repr__(self) -> str:
        return f"<PendingRevenue {self.client_name} {self.total_amount} ({self.status.value})>"


class ConfirmedRevenue(TrackedBase):
    """Cash received from a client; immutable once written."""

    __tablename__ = "confirmed_revenues"

    __tenant_via__ = "mission"

    mission_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("missions.id"),
        nullable=False,
        index=True,
    )

    pending_revenue_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("pending_revenues.id"),
        nullable=True,
        unique=True,
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    company_amount: Mapped[Decimal] = mapped_column(nullable=False)

    provider_amount: Mapped[Decimal] = mapped_column(nullable=False)

    received_date: Mapped[datetime] = mapped_column(nullable=False)

    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_type: Mapped[AccountType | None] = mapped_column(
        EnumString(AccountType),
        nullable=True,
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    mission: Mapped[Mission] = relationship(lazy="joined", innerjoin=True)

    def __repr__(self) -> str:
        return f"<ConfirmedRevenue {self.client_name} {self.total_amount}>"
