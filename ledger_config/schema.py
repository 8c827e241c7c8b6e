"""
LedgerSettings schema.

Frozen dataclasses for the runtime settings tree.  The loader builds these
from YAML; everything else only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for the ledger store."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    statement_timeout_ms: int = 5000
    connect_timeout_s: int = 5


@dataclass(frozen=True)
class RetrySettings:
    """Transient store failure policy for public API calls."""

    attempts: int = 2  # first try plus one retry
    backoff_seconds: float = 0.2


@dataclass(frozen=True)
class SettlementSettings:
    epsilon: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class AlertSettings:
    tick_interval_seconds: float = 60.0
    default_days_advance: int = 7


@dataclass(frozen=True)
class LedgerSettings:
    """Root of the settings tree."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    settlement: SettlementSettings = field(default_factory=SettlementSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    source: str = "<defaults>"
    checksum: str = ""
