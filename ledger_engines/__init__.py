"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    ledger kernel's selectors and services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import the kernel's
    domain values, money helpers and model enums only.  MUST NOT import
    ledger_services.

Invariants enforced:
    - Engines never read the clock; dates and times are passed in.
    - Decimal-only arithmetic for money.
    - Identical inputs always produce identical outputs.
    - Every engine entry point is traced via ``@traced_engine``.
"""

from ledger_engines.alert_rules import (
    AlertFinding,
    AlertRule,
    AlertRuleEvaluator,
    is_due,
    overdue_payments,
    upcoming_payments,
)
from ledger_engines.balance import (
    BalanceCalculator,
    BalanceComputation,
    MissionShareInput,
    provider_share,
)
from ledger_engines.liquidation import (
    LiquidationPlan,
    LiquidationPlanner,
    OpenObligation,
)
from ledger_engines.orphan_matching import (
    OrphanCandidate,
    OrphanMatch,
    OrphanMatcher,
    OrphanMatchStrategy,
    ProviderCandidate,
    ProviderNameMatchStrategy,
    is_orphan,
    parse_provider_reference,
)
from ledger_engines.tracer import traced_engine

__all__ = [
    "AlertFinding",
    "AlertRule",
    "AlertRuleEvaluator",
    "BalanceCalculator",
    "BalanceComputation",
    "LiquidationPlan",
    "LiquidationPlanner",
    "MissionShareInput",
    "OpenObligation",
    "OrphanCandidate",
    "OrphanMatch",
    "OrphanMatchStrategy",
    "OrphanMatcher",
    "ProviderCandidate",
    "ProviderNameMatchStrategy",
    "is_due",
    "is_orphan",
    "overdue_payments",
    "parse_provider_reference",
    "provider_share",
    "traced_engine",
    "upcoming_payments",
]
