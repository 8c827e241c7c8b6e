"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.alert_service import (
    AlertConfigInfo,
    AlertConfigService,
    AlertEvaluator,
)
from ledger_kernel.services.expense_service import ExpenseInfo, ExpenseService
from ledger_kernel.services.isolation_guard import (
    access_level_for,
    assert_ownership,
    ensure_tenant_stamped,
    require_level,
    resolve_company,
    resolve_tenant,
)
from ledger_kernel.services.ledger_store import ProviderLockRegistry, TenantLedgerStore
from ledger_kernel.services.mission_service import MissionInfo, MissionService
from ledger_kernel.services.orphan_repair_service import OrphanRepairService
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.provider_service import ProviderInfo, ProviderService
from ledger_kernel.services.revenue_service import RevenueService
from ledger_kernel.services.settlement_service import SettlementService

__all__ = [
    "AlertConfigInfo",
    "AlertConfigService",
    "AlertEvaluator",
    "ExpenseInfo",
    "ExpenseService",
    "MissionInfo",
    "MissionService",
    "OrphanRepairService",
    "PaymentService",
    "ProviderInfo",
    "ProviderLockRegistry",
    "ProviderService",
    "RevenueService",
    "SettlementService",
    "TenantLedgerStore",
    "access_level_for",
    "assert_ownership",
    "ensure_tenant_stamped",
    "require_level",
    "resolve_company",
    "resolve_tenant",
]
