"""Read-only selectors.  Every query is tenant filtered and returns DTOs."""

from ledger_kernel.selectors.balance_selector import ProviderBalanceSelector
from ledger_kernel.selectors.base import BaseSelector, tenant_select
from ledger_kernel.selectors.integrity_selector import DataIntegritySelector
from ledger_kernel.selectors.metrics_selector import LedgerMetricsSelector
from ledger_kernel.selectors.payment_selector import PaymentSelector
from ledger_kernel.selectors.revenue_selector import RevenueSelector

__all__ = [
    "BaseSelector",
    "DataIntegritySelector",
    "LedgerMetricsSelector",
    "PaymentSelector",
    "ProviderBalanceSelector",
    "RevenueSelector",
    "tenant_select",
]
