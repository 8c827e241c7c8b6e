"""
Module: ledger_kernel.models.alert
Responsibility: ORM persistence for tenant-scoped alert rules.  Alerts that
    fire from these rules are ephemeral and are not stored here.

Invariants enforced:
    - ``last_triggered_at`` is written only by the alert evaluator, once per
      evaluation of a due rule, whether or not an alert fired.
    - A rule is only ever read or evaluated inside its own company.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import EnumString, TenantOwned, TrackedBase


class AlertType(str, Enum):
    PAYMENT = "payment"
    GOAL = "goal"
    CASHFLOW = "cashflow"
    EXPENSE = "expense"


class AlertFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def interval(self) -> timedelta:
        return _FREQUENCY_INTERVALS[self]


_FREQUENCY_INTERVALS = {
    AlertFrequency.DAILY: timedelta(days=1),
    AlertFrequency.WEEKLY: timedelta(days=7),
    AlertFrequency.MONTHLY: timedelta(days=30),
}


class AlertOperator(str, Enum):
    GREATER = "greater"
    LESS = "less"
    EQUAL = "equal"


class AlertConfig(TenantOwned, TrackedBase):
    """A user-defined rule evaluated periodically against ledger state."""

    __tablename__ = "alert_configs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    type: Mapped[AlertType] = mapped_column(EnumString(AlertType), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    frequency: Mapped[AlertFrequency] = mapped_column(
        EnumString(AlertFrequency),
        nullable=False,
        default=AlertFrequency.DAILY,
    )

    # Payment rules: minimum overdue count that raises an alert
    threshold: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Payment rules: look-ahead window for upcoming due dates
    days_advance: Mapped[int | None] = mapped_column(Integer, nullable=True)

    condition_operator: Mapped[AlertOperator] = mapped_column(
        EnumString(AlertOperator),
        nullable=False,
        default=AlertOperator.LESS,
    )

    condition_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    notify_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notify_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_triggered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<AlertConfig {self.name} ({self.type.value}/{self.frequency.value})>"
