"""
Module: ledger_kernel.models.mission
Responsibility: ORM persistence for missions (billable jobs) and the
    secondary-provider assignments attached to them.

Invariants enforced:
    - ``provider_value`` only counts toward settled provider balances once
      ``is_approved`` is True.  Unapproved missions feed the pending
      projection only.
    - Every assigned provider belongs to the mission's company (enforced by
      MissionService on assignment, not by a database constraint).
    - A mission never changes company.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Column, Date, ForeignKey, Index, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import (
    Base,
    EnumString,
    TenantOwned,
    TrackedBase,
    UUIDString,
)
from ledger_kernel.models.provider import ServiceProvider


class MissionStatus(str, Enum):
    """Mission progress."""

    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


mission_providers = Table(
    "mission_providers",
    Base.metadata,
    Column("mission_id", UUIDString(), ForeignKey("missions.id"), primary_key=True),
    Column(
        "provider_id",
        UUIDString(),
        ForeignKey("service_providers.id"),
        primary_key=True,
    ),
)


class Mission(TenantOwned, TrackedBase):
    """
    A billable job.

    ``provider_id`` is the primary provider.  ``assigned_providers`` holds
    the full assignment list used to split ``provider_value`` among
    secondary providers.
    """

    __tablename__ = "missions"

    __table_args__ = (
        Index("idx_mission_company_approved", "company_id", "is_approved"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[MissionStatus] = mapped_column(
        EnumString(MissionStatus),
        nullable=False,
        default=MissionStatus.PLANNING,
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    provider_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("service_providers.id"),
        nullable=True,
        index=True,
    )

    service_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    provider_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    company_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    budget: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_expenses: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    assigned_providers: Mapped[list[ServiceProvider]] = relationship(
        secondary=mission_providers,
        lazy="selectin",
    )

    @property
    def assigned_provider_ids(self) -> tuple[UUID, ...]:
        return tuple(p.id for p in self.assigned_providers)

    def __repr__(self) -> str:
        return f"<Mission {self.title} ({self.status.value})>"
