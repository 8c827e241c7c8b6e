"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import ProviderNotFoundError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from ledger_kernel.models import PaymentStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        [record] = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_are_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        payment_id = uuid4()
        get_logger("test").info(
            "payment",
            extra={"payment_id": payment_id, "amount": Decimal("12.30"), "status": PaymentStatus.PENDING},
        )

        [record] = _parse_all_logs(stream)
        assert record["payment_id"] == str(payment_id)
        assert record["amount"] == "12.30"
        assert record["status"] == "pending"

    def test_kernel_error_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ProviderNotFoundError("abc")
        except ProviderNotFoundError:
            get_logger("test").exception("lookup_failed")

        [record] = _parse_all_logs(stream)
        assert record["exc_type"] == "ProviderNotFoundError"
        assert record["exc_code"] == ProviderNotFoundError.code
        assert "traceback" in record

    def test_below_level_is_dropped(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("quiet")
        assert _parse_all_logs(stream) == []


class TestLogContext:

    def test_context_fields_appear_in_records(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(correlation_id="c-1", tenant_id="t-1"):
            get_logger("test").info("inside")

        [record] = _parse_all_logs(stream)
        assert record["correlation_id"] == "c-1"
        assert record["tenant_id"] == "t-1"

    def test_bind_restores_previous_values(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner", operation="op"):
            assert LogContext.get_all() == {"tenant_id": "inner", "operation": "op"}
        assert LogContext.get_all() == {"tenant_id": "outer"}

    def test_none_values_are_skipped(self):
        with LogContext.bind(actor_id=None, provider_id="p"):
            assert LogContext.get_all() == {"provider_id": "p"}

    def test_unknown_field_is_rejected(self):
        with pytest.raises(TypeError):
            with LogContext.bind(company="x"):
                pass

    def test_clear(self):
        LogContext.set(correlation_id="x", actor_id="y")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("ledger_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_does_not_propagate_to_root(self):
        configure_logging(handler=logging.NullHandler())
        assert logging.getLogger("ledger_kernel").propagate is False
