"""
Domain DTOs -- immutable values passed between layers.

Responsibility:
    Frozen dataclasses returned by selectors, services and the public API.
    No ORM instance ever crosses a public boundary; callers receive these
    values instead, so nothing they hold can lazily load rows from another
    tenant or be flushed by accident.

Architecture position:
    Kernel > Domain.  Imports only model enums (plain ``str`` enums with
    no session behaviour).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, IntEnum
from uuid import UUID

from ledger_kernel.models.alert import AlertType
from ledger_kernel.models.payment import PaymentStatus, PaymentType
from ledger_kernel.models.revenue import PendingRevenueStatus
from ledger_kernel.models.transaction import AccountType

# ---------------------------------------------------------------------------
# Tenant context
# ---------------------------------------------------------------------------


class AccessLevel(IntEnum):
    """Ordered access levels: none < provider < employee < owner."""

    NONE = 0
    PROVIDER = 1
    EMPLOYEE = 2
    OWNER = 3


@dataclass(frozen=True)
class TenantContext:
    """
    A resolved caller identity.

    Contract:
        Built only by the isolation guard (or ``system()`` for background
        jobs).  Every service receives one of these, never a raw profile.
    """

    company_id: UUID
    access_level: AccessLevel
    profile_id: UUID | None = None
    provider_id: UUID | None = None

    @classmethod
    def system(cls, company_id: UUID) -> TenantContext:
        """Context for scheduler-driven work inside one company."""
        return cls(company_id=company_id, access_level=AccessLevel.OWNER)

    @property
    def is_system(self) -> bool:
        return self.profile_id is None

    def at_least(self, level: AccessLevel) -> bool:
        return self.access_level >= level


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderBalance:
    provider_id: UUID
    current: Decimal
    pending: Decimal


@dataclass(frozen=True)
class ProviderBalanceDetails:
    """Breakdown behind a provider's balance."""

    provider_id: UUID
    earned: Decimal
    paid: Decimal
    marked_as_received: Decimal
    available: Decimal
    current: Decimal
    pending: Decimal
    approved_mission_count: int
    pending_mission_count: int


# ---------------------------------------------------------------------------
# Payments and settlement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentInfo:
    id: UUID
    company_id: UUID
    provider_id: str | None
    provider_name: str
    amount: Decimal
    type: PaymentType
    status: PaymentStatus
    due_date: date
    payment_date: date | None
    settled_by_payment_id: UUID | None = None


@dataclass(frozen=True)
class LiquidatedPayment:
    payment_id: UUID
    amount: Decimal
    due_date: date


@dataclass(frozen=True)
class SettlementResult:
    """
    Outcome of one settlement pass for one provider.

    ``difference`` is signed: positive means the caller paid more than was
    pending, negative means obligations remain.
    """

    provider_id: UUID
    amount: Decimal
    liquidated: tuple[LiquidatedPayment, ...]
    liquidated_total: Decimal
    remainder: Decimal
    pending_total: Decimal
    difference: Decimal
    fully_settled: bool
    balance_payment_id: UUID | None = None

    @property
    def liquidated_count(self) -> int:
        return len(self.liquidated)


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingRevenueInfo:
    id: UUID
    mission_id: UUID
    client_name: str
    total_amount: Decimal
    company_amount: Decimal
    provider_amount: Decimal
    due_date: date
    status: PendingRevenueStatus
    confirmed_revenue_id: UUID | None = None


@dataclass(frozen=True)
class ConfirmedRevenueInfo:
    id: UUID
    mission_id: UUID
    pending_revenue_id: UUID | None
    client_name: str
    total_amount: Decimal
    company_amount: Decimal
    provider_amount: Decimal
    received_date: datetime
    payment_method: str
    account_id: UUID | None
    account_type: AccountType | None
    transaction_id: UUID


@dataclass(frozen=True)
class RevenueConfirmation:
    pending: PendingRevenueInfo
    confirmed: ConfirmedRevenueInfo
    transaction_id: UUID


# ---------------------------------------------------------------------------
# Orphan repair and integrity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrphanRepairResult:
    company_id: UUID
    strategy: str
    orphan_count: int
    fixed_count: int
    unresolved_count: int
    fixed_payment_ids: tuple[UUID, ...] = ()
    unresolved_payment_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class IntegrityReport:
    """
    Read-only isolation check for one tenant.

    ``cross_tenant_references`` counts rows of this tenant that point at a
    provider or mission owned by another company.
    """

    company_id: UUID
    record_counts: tuple[tuple[str, int], ...]
    orphan_payment_count: int
    cross_tenant_references: int

    @property
    def is_isolated(self) -> bool:
        return self.cross_tenant_references == 0

    @property
    def counts(self) -> dict[str, int]:
        return dict(self.record_counts)


# ---------------------------------------------------------------------------
# Metrics and alerts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OpenPayment:
    """An unpaid obligation as seen by the alert rules."""

    payment_id: UUID
    amount: Decimal
    due_date: date
    status: PaymentStatus


@dataclass(frozen=True)
class LedgerMetrics:
    """Point-in-time figures for one company."""

    company_id: UUID
    as_of: date
    monthly_income: Decimal
    monthly_expenses: Decimal
    total_balance: Decimal
    open_payments: tuple[OpenPayment, ...] = ()


class AlertPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ActiveAlert:
    """An alert raised by one evaluation of one config.  Never persisted."""

    id: UUID
    config_id: UUID
    company_id: UUID
    type: AlertType
    kind: str
    title: str
    message: str
    severity: AlertSeverity
    priority: AlertPriority
    created_at: datetime
    value: Decimal | None = None
    threshold: Decimal | None = None
    amount: Decimal | None = None
