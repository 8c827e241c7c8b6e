"""
Module: ledger_kernel.models.company
Responsibility: ORM persistence for tenants (companies) and the user
    profiles that act inside them.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A Company is the root of isolation: every ledger row carries, directly
      or through its mission, exactly one company id for its whole lifetime.
    - A Profile's company_id may be NULL (unassigned user, or a provider who
      reaches a company through their ServiceProvider row).  Tenant
      resolution lives in services/isolation_guard.py, never here.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import EnumString, TrackedBase, UUIDString


class UserRole(str, Enum):
    """Role of a profile inside its company."""

    OWNER = "owner"
    EMPLOYEE = "employee"


class UserType(str, Enum):
    """Kind of account behind a profile."""

    ADMIN = "admin"
    EMPLOYEE = "employee"
    PROVIDER = "provider"


class Company(TrackedBase):
    """A tenant.  Owned by one user; never shares rows with another tenant."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    legal_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tax_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    owner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Company {self.name}>"


class Profile(TrackedBase):
    """
    An authenticated user's profile.

    ``provider_id`` is only meaningful when ``user_type`` is PROVIDER; such
    profiles resolve their tenant through the provider row.
    """

    __tablename__ = "profiles"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=True,
        index=True,
    )

    role: Mapped[UserRole] = mapped_column(
        EnumString(UserRole),
        nullable=False,
        default=UserRole.EMPLOYEE,
    )

    user_type: Mapped[UserType] = mapped_column(
        EnumString(UserType),
        nullable=False,
        default=UserType.EMPLOYEE,
    )

    provider_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("service_providers.id"),
        nullable=True,
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Profile {self.email} ({self.user_type})>"
