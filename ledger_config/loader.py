"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_settings()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; unknown keys are rejected rather than ignored.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AlertSettings,
    DatabaseSettings,
    LedgerSettings,
    RetrySettings,
    SettlementSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    return section


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{section}.{key} must be a positive integer, got {value!r}")
    return value


def _non_negative_number(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"{section}.{key} must be a non-negative number, got {value!r}")
    return float(value)


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    section = _section(data, "database", set(DatabaseSettings.__dataclass_fields__))
    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseSettings(
        url=url,
        echo=bool(section.get("echo", defaults.echo)),
        pool_size=_positive_int("database", "pool_size", section.get("pool_size", defaults.pool_size)),
        max_overflow=int(section.get("max_overflow", defaults.max_overflow)),
        pool_timeout=_positive_int("database", "pool_timeout", section.get("pool_timeout", defaults.pool_timeout)),
        statement_timeout_ms=_positive_int(
            "database", "statement_timeout_ms",
            section.get("statement_timeout_ms", defaults.statement_timeout_ms),
        ),
        connect_timeout_s=_positive_int(
            "database", "connect_timeout_s",
            section.get("connect_timeout_s", defaults.connect_timeout_s),
        ),
    )


def parse_retry(data: dict[str, Any]) -> RetrySettings:
    defaults = RetrySettings()
    section = _section(data, "retry", set(RetrySettings.__dataclass_fields__))
    return RetrySettings(
        attempts=_positive_int("retry", "attempts", section.get("attempts", defaults.attempts)),
        backoff_seconds=_non_negative_number(
            "retry", "backoff_seconds", section.get("backoff_seconds", defaults.backoff_seconds)
        ),
    )


def parse_settlement(data: dict[str, Any]) -> SettlementSettings:
    defaults = SettlementSettings()
    section = _section(data, "settlement", set(SettlementSettings.__dataclass_fields__))
    raw = section.get("epsilon", defaults.epsilon)
    try:
        # str() first: YAML hands floats over and Decimal(0.01) is not 0.01
        epsilon = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"settlement.epsilon is not a number: {raw!r}") from exc
    if not epsilon.is_finite() or epsilon < 0:
        raise ValueError(f"settlement.epsilon must be a non-negative number, got {raw!r}")
    return SettlementSettings(epsilon=epsilon)


def parse_alerts(data: dict[str, Any]) -> AlertSettings:
    defaults = AlertSettings()
    section = _section(data, "alerts", set(AlertSettings.__dataclass_fields__))
    interval = _non_negative_number(
        "alerts", "tick_interval_seconds",
        section.get("tick_interval_seconds", defaults.tick_interval_seconds),
    )
    if interval == 0:
        raise ValueError("alerts.tick_interval_seconds must be greater than zero")
    days = section.get("default_days_advance", defaults.default_days_advance)
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValueError(f"alerts.default_days_advance must be a non-negative integer, got {days!r}")
    return AlertSettings(tick_interval_seconds=interval, default_days_advance=days)


def parse_settings(data: dict[str, Any], source: str = "<inline>") -> LedgerSettings:
    """Build a LedgerSettings tree from already loaded YAML data."""
    unknown = set(data) - {"database", "retry", "settlement", "alerts"}
    if unknown:
        raise ValueError(f"Unknown settings section(s): {', '.join(sorted(unknown))}")
    return LedgerSettings(
        database=parse_database(data),
        retry=parse_retry(data),
        settlement=parse_settlement(data),
        alerts=parse_alerts(data),
        source=source,
        checksum=compute_checksum(data),
    )
