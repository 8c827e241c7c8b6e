"""ORM models.  Importing this package registers every ledger table."""

from ledger_kernel.models.alert import (
    AlertConfig,
    AlertFrequency,
    AlertOperator,
    AlertType,
)
from ledger_kernel.models.company import Company, Profile, UserRole, UserType
from ledger_kernel.models.expense import Expense, ExpenseStatus
from ledger_kernel.models.mission import Mission, MissionStatus, mission_providers
from ledger_kernel.models.payment import (
    LIQUIDATING_TYPES,
    SETTLEABLE_STATUSES,
    TERMINAL_STATUSES,
    Payment,
    PaymentStatus,
    PaymentType,
)
from ledger_kernel.models.provider import PaymentMethod, ServiceProvider
from ledger_kernel.models.revenue import (
    ConfirmedRevenue,
    PendingRevenue,
    PendingRevenueStatus,
)
from ledger_kernel.models.transaction import (
    AccountType,
    LedgerTransaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "AccountType",
    "AlertConfig",
    "AlertFrequency",
    "AlertOperator",
    "AlertType",
    "Company",
    "ConfirmedRevenue",
    "Expense",
    "ExpenseStatus",
    "LIQUIDATING_TYPES",
    "LedgerTransaction",
    "Mission",
    "MissionStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "PendingRevenue",
    "PendingRevenueStatus",
    "Profile",
    "SETTLEABLE_STATUSES",
    "ServiceProvider",
    "TERMINAL_STATUSES",
    "TransactionCategory",
    "TransactionStatus",
    "TransactionType",
    "UserRole",
    "UserType",
    "mission_providers",
]
