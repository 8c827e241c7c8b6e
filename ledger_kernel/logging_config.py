"""
Structured JSON logging for the ledger kernel.

Each record becomes one JSON object per line: ``ts``, ``level``, ``logger``
and ``message``, then whatever tenant/actor/operation fields are bound in
``LogContext``, then the record's ``extra`` keys.  Records logged with an
exception also carry ``exc_type``, ``exc_message``, the ledger error
``exc_code`` and the formatted ``traceback``.

Everything lives under the ``ledger_kernel`` logger; ``configure_logging()``
attaches a single handler there and stops propagation to the root logger.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

_LOGGER_PREFIX = "ledger_kernel"

CONTEXT_FIELDS = ("correlation_id", "tenant_id", "actor_id", "provider_id", "operation")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


class LogContext:
    """Request-scoped log fields, isolated per thread and per asyncio task.

    ``LedgerAPI`` binds correlation, actor and operation for each call and
    adds the tenant once it is resolved; the scheduler binds the tenant it
    is evaluating.  None values are never stored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        for name, value in fields.items():
            if value is not None:
                _context_var(name).set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        bound: dict[str, str] = {}
        for name, var in _context_vars.items():
            value = var.get()
            if value is not None:
                bound[name] = value
        return bound

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the ``with`` block, restoring prior values after."""
        tokens = []
        for name, value in fields.items():
            if value is not None:
                var = _context_var(name)
                tokens.append((var, var.set(str(value))))
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    # UUID, Decimal and anything unknown fall through to str().
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS:
                payload.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload.update(self._exception_fields(exc))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # Ledger errors keep their context (ids, amounts, statuses) as attributes.
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "code":
                fields[f"exc_{key}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger named ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_config_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach the JSON handler to ``ledger_kernel``.

    Only the first call takes effect; later calls are no-ops until
    ``reset_logging()``.  ``handler`` wins over ``stream``; with neither,
    records go to stderr.
    """
    global _installed_handler
    with _config_lock:
        if _installed_handler is not None:
            return
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(target)
        _installed_handler = target


def reset_logging() -> None:
    """Detach the installed handler. Tests only."""
    global _installed_handler
    with _config_lock:
        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        if _installed_handler is not None:
            kernel_logger.removeHandler(_installed_handler)
            _installed_handler = None
        kernel_logger.setLevel(logging.WARNING)
