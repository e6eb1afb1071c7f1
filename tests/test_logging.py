"""Tests for the structured logging system (yield_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from yield_kernel.exceptions import RangeNotFoundError
from yield_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's config."""
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
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "yield_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("batch_registered", extra={"batch_number": 42, "status": "active"})

        record = _parse_log(stream)
        assert record["batch_number"] == 42
        assert record["status"] == "active"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", close_id="close-456")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["close_id"] == "close-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Yield kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise RangeNotFoundError(Decimal("150.5"))
        except RangeNotFoundError:
            get_logger("test").error("range_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "RANGE_NOT_FOUND"
        assert record["exc_type"] == "RangeNotFoundError"
        assert record["exc_avg_weight"] == "150.5"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "close_id" not in record

    def test_uuid_decimal_and_date_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed_values",
            extra={"template_id": uid, "kg": Decimal("12.50")},
        )

        record = _parse_log(stream)
        assert record["template_id"] == str(uid)
        assert record["kg"] == "12.50"

    def test_level_filters_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", template_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "template_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(close_id="outer")
        with LogContext.bind(close_id="inner"):
            assert LogContext.get_all()["close_id"] == "inner"
        assert LogContext.get_all()["close_id"] == "outer"

    def test_bind_restores_none(self):
        assert "real_yield_id" not in LogContext.get_all()
        with LogContext.bind(real_yield_id="temp"):
            assert LogContext.get_all()["real_yield_id"] == "temp"
        assert "real_yield_id" not in LogContext.get_all()

    def test_bind_stringifies_ids(self):
        uid = uuid4()
        with LogContext.bind(template_id=uid, actor_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"template_id": str(uid)}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            close_id="d",
            real_yield_id="r",
            template_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["real_yield_id"] == "r"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        handlers = logging.getLogger("yield_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers
        structured = [h for h in handlers if isinstance(h.formatter, StructuredFormatter)]
        assert structured == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.learning").name == "yield_kernel.services.learning"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "yield_kernel.deep.nested.module"
