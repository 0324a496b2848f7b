"""Tests for the structured logging system (contract_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from contract_kernel.exceptions import TicketAlreadyBoundError
from contract_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Give each test an unconfigured logger; restore the suite's config after."""
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


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "contract_kernel.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        contract_id = uuid4()
        get_logger("test").info(
            "trip_usage_recorded",
            extra={"contract_id": contract_id, "volume_m3": Decimal("12.50")},
        )

        record = _parse_log(stream)
        assert record["contract_id"] == str(contract_id)
        assert record["volume_m3"] == "12.50"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(actor_id="user-1", role="KGU_ZKH_ADMIN")
        get_logger("test").info("in_context")

        record = _parse_log(stream)
        assert record["actor_id"] == "user-1"
        assert record["role"] == "KGU_ZKH_ADMIN"

    def test_kernel_error_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise TicketAlreadyBoundError("t-1", "c-1", "c-2")
        except TicketAlreadyBoundError:
            get_logger("test").warning("bind_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "TicketAlreadyBoundError"
        assert record["exc_code"] == "TICKET_ALREADY_BOUND"
        assert record["exc_bound_contract_id"] == "c-1"
        assert record["exc_requested_contract_id"] == "c-2"
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "actor_id" not in record
        assert "contract_id" not in record

    def test_debug_suppressed_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_clear(self):
        LogContext.set(correlation_id="x", contract_id="c")
        assert LogContext.get_all() == {"correlation_id": "x", "contract_id": "c"}

        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(event_id="nope")

    def test_bind_restores_previous(self):
        LogContext.set(ticket_id="outer")
        with LogContext.bind(ticket_id="inner", trip_id=uuid4()):
            ctx = LogContext.get_all()
            assert ctx["ticket_id"] == "inner"
            assert "trip_id" in ctx
        assert LogContext.get_all() == {"ticket_id": "outer"}

    def test_bind_stringifies_and_skips_none(self):
        org = uuid4()
        with LogContext.bind(organization_id=org, contract_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"organization_id": str(org)}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        reset_logging()
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        handlers = logging.getLogger("contract_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_level_from_string(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="DEBUG")
        get_logger("deep.nested").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "contract_kernel.deep.nested"
