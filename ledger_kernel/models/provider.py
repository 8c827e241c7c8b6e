"""
Module: ledger_kernel.models.provider
Responsibility: ORM persistence for service providers (contractors) that a
    company pays and assigns to missions.

Invariants enforced:
    - ``current_balance`` is a cache.  It is only ever written by the
      balance recomputation path and may be recomputed at any time from
      missions and payments with identical results.
    - ``total_marked_as_received`` only grows; it records amounts the
      provider acknowledged receiving outside the payment ledger.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import EnumString, TenantOwned, TrackedBase


class PaymentMethod(str, Enum):
    """How money moves to or from the company."""

    PIX = "pix"
    TRANSFER = "transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    CASH = "cash"


class ServiceProvider(TenantOwned, TrackedBase):
    """A contractor owned by exactly one company."""

    __tablename__ = "service_providers"

    __table_args__ = (
        Index("idx_provider_company_name", "company_id", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    service: Mapped[str | None] = mapped_column(String(255), nullable=True)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        EnumString(PaymentMethod),
        nullable=False,
        default=PaymentMethod.PIX,
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Cached; see balance recomputation in services/provider_service.py
    current_balance: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_marked_as_received: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<ServiceProvider {self.name}>"
