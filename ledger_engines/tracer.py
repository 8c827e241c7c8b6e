"""
ledger_engines.tracer -- ``@traced_engine`` for the pure ledger engines.

Every decorated call logs one ``LEDGER_ENGINE_TRACE`` record naming the
engine and its version, a 16-hex-char fingerprint of the selected keyword
inputs, the duration and whether the call returned or raised.  Two calls
with equal inputs share a fingerprint, so a liquidation plan or alert
verdict in the logs can be matched to the exact inputs that produced it.

Inputs are normalized before hashing:
    - Decimals by value, not scale (``10.0`` and ``10.00`` are equal).
    - Frozen dataclasses field by field; enums by value.
    - Mappings by sorted key; sets in a stable order.
    - Anything else by ``str()``.

Usage:
    @traced_engine("liquidation", "1.0", fingerprint_fields=("amount", "obligations"))
    def plan(self, *, amount, obligations):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _normalize(value: Any) -> Any:
    """Reduce an engine input to plain JSON data with a stable shape."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value.is_finite() else str(value)
    if isinstance(value, Enum):
        return _normalize(value.value)
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _normalize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """SHA-256 prefix over the named keyword inputs; absent names hash as null."""
    selected = {name: _normalize(kwargs.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            outcome = "error"
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(
                    "LEDGER_ENGINE_TRACE",
                    extra={
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "function": func.__qualname__,
                        "input_fingerprint": fingerprint,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                        "outcome": outcome,
                    },
                )

        return wrapper

    return decorator
