"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite default."""
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


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("posted", extra={"sequence": 42, "status": "posted"})

        record = _parse_log(stream)
        assert record["sequence"] == 42
        assert record["status"] == "posted"

    def test_decimal_and_uuid_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("amounts", extra={"amount": Decimal("10.50"), "account_id": uid})

        record = _parse_log(stream)
        assert record["amount"] == "10.50"
        assert record["account_id"] == str(uid)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(company_id="co-1", transaction_id="txn-9")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["company_id"] == "co-1"
        assert record["transaction_id"] == "txn-9"

    def test_ledger_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        from ledger_kernel.exceptions import SameAccountError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise SameAccountError("acc-1")
        except SameAccountError:
            get_logger("test").error("posting_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "SameAccountError"
        assert record["exc_code"] == SameAccountError.code
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "company_id" not in record
        assert "transaction_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(company_id="x", actor_id="y")
        assert LogContext.get_all() == {"company_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(budget_id="b")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_outer_value(self):
        LogContext.set(company_id="outer")
        with LogContext.bind(company_id="inner"):
            assert LogContext.get_all()["company_id"] == "inner"
        assert LogContext.get_all()["company_id"] == "outer"

    def test_bind_stringifies_uuids(self):
        uid = uuid4()
        with LogContext.bind(transaction_id=uid, budget_id=None):
            ctx = LogContext.get_all()
            assert ctx["transaction_id"] == str(uid)
            assert "budget_id" not in ctx
        assert "transaction_id" not in LogContext.get_all()


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("ledger_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.transaction_ledger").name == (
            "ledger_kernel.services.transaction_ledger"
        )

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("modules.budget.service").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "ledger_kernel.modules.budget.service"
