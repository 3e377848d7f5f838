"""
Tests for cpq_kernel.logging_config.

Covers:
- One JSON object per record with base fields, extras and context
- Costing exceptions rendered with their code and structured fields
- LogContext set / clear / bind semantics
- configure_logging idempotency and the cpq_kernel logger hierarchy
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from cpq_kernel.exceptions import InvalidMarginPercentError, UnknownAfpProviderError
from cpq_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Each test configures logging itself; the suite setup is restored after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def json_stream():
    """Configure logging onto a fresh stream and return a reader of parsed records."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(handler=handler, level=logging.DEBUG)
    return lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_base_fields(self, json_stream):
        get_logger("engines.pricing").info("sale_price_filled")

        (record,) = json_stream()
        assert record["message"] == "sale_price_filled"
        assert record["level"] == "INFO"
        assert record["logger"] == "cpq_kernel.engines.pricing"
        assert record["ts"].endswith("+00:00")

    def test_extras_and_value_types(self, json_stream):
        position_id = uuid4()
        get_logger("engines.employer_cost").info("employer_cost_computed", extra={
            "num_guards": 4,
            "contract_type": "indefinite",
            "position_id": position_id,
            "monthly_employer_cost_clp": Decimal("880395"),
        })

        (record,) = json_stream()
        assert record["num_guards"] == 4
        assert record["contract_type"] == "indefinite"
        assert record["position_id"] == str(position_id)
        assert record["monthly_employer_cost_clp"] == "880395"

    def test_context_copied_onto_records(self, json_stream):
        logger = get_logger("services.quote_costing")
        logger.info("before")
        with LogContext.bind(quote_id="q-1", tenant_id="acme"):
            logger.info("inside")

        before, inside = json_stream()
        assert "quote_id" not in before
        assert inside["quote_id"] == "q-1"
        assert inside["tenant_id"] == "acme"

    def test_plain_exception(self, json_stream):
        try:
            raise ValueError("bad unit")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = json_stream()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "bad unit"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_costing_exception_fields(self, json_stream):
        try:
            raise InvalidMarginPercentError("100")
        except InvalidMarginPercentError:
            get_logger("test").error("pricing_error", exc_info=True)
        try:
            raise UnknownAfpProviderError("nonexistent", "cl-2026-02", ["habitat"])
        except UnknownAfpProviderError:
            get_logger("test").error("payroll_error", exc_info=True)

        margin, afp = json_stream()
        assert margin["exc_code"] == "INVALID_MARGIN_PERCENT"
        assert margin["exc_margin_pct"] == "100"
        assert afp["exc_type"] == "UnknownAfpProviderError"
        assert afp["exc_provider"] == "nonexistent"

    def test_formatter_standalone(self):
        record = logging.makeLogRecord({"name": "cpq_kernel.x", "msg": "hello %s", "args": ("quote",)})
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "hello quote"


class TestLogContext:
    def test_set_merges(self):
        LogContext.set(correlation_id="c-1")
        LogContext.set(quote_id="q-1", actor_id=None)
        assert LogContext.get_all() == {"correlation_id": "c-1", "quote_id": "q-1"}

    def test_clear(self):
        LogContext.set(tenant_id="acme")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_values(self):
        LogContext.set(quote_id="outer")
        with LogContext.bind(quote_id="inner", position_id="p-1"):
            assert LogContext.get_all() == {"quote_id": "inner", "position_id": "p-1"}
        assert LogContext.get_all() == {"quote_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(quote_id="q-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_bind_stringifies_and_filters(self):
        quote_id = uuid4()
        with LogContext.bind(quote_id=quote_id, not_a_field="x"):
            assert LogContext.get_all() == {"quote_id": str(quote_id)}

    def test_every_field(self):
        fields = {
            "correlation_id": "c",
            "tenant_id": "t",
            "actor_id": "a",
            "quote_id": "q",
            "position_id": "p",
            "trace_id": "tr",
        }
        LogContext.set(**fields)
        assert LogContext.get_all() == fields


class TestConfigureLogging:
    def test_second_call_is_a_no_op(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("cpq_kernel").handlers
        assert first in handlers
        assert second not in handlers

    def test_default_level_drops_debug(self):
        stream = StringIO()
        configure_logging(stream=stream)
        logger = get_logger("services.sql_store")
        logger.debug("quote_header_persisted")
        logger.warning("stale_rule_version")

        messages = [json.loads(line)["message"] for line in stream.getvalue().splitlines()]
        assert messages == ["stale_rule_version"]

    def test_children_share_the_root_handler(self, json_stream):
        get_logger("engines.position_cost").debug("position_cost_cache_hit")

        (record,) = json_stream()
        assert record["logger"] == "cpq_kernel.engines.position_cost"
        assert not logging.getLogger("cpq_kernel").propagate

    def test_reset_allows_reconfiguration(self):
        configure_logging(handler=logging.NullHandler())
        reset_logging()
        assert logging.getLogger("cpq_kernel").handlers == []
