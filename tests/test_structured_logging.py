"""
Tests for the JSON log formatter and LogContext propagation.
"""

import json
import logging
import sys
import threading
from decimal import Decimal
from uuid import UUID

import pytest

from procurement_kernel.exceptions import OverReceiptError
from procurement_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _record(msg="event", exc_info=None, **extra):
    record = logging.LogRecord(
        "procurement_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_single_json_line(self):
        line = StructuredFormatter().format(_record("receipt_applied", lines=2))

        payload = json.loads(line)
        assert "\n" not in line
        assert payload["message"] == "receipt_applied"
        assert payload["level"] == "INFO"
        assert payload["lines"] == 2

    def test_domain_values_serialized(self):
        item_id = UUID("12345678-1234-5678-1234-567812345678")

        payload = json.loads(
            StructuredFormatter().format(_record(item_id=item_id, quantity=Decimal("2.50")))
        )

        assert payload["item_id"] == str(item_id)
        assert payload["quantity"] == "2.50"

    def test_context_fields_included(self):
        with LogContext.bind(correlation_id="c-1", po_id="po-1"):
            payload = json.loads(StructuredFormatter().format(_record()))

        assert payload["correlation_id"] == "c-1"
        assert payload["po_id"] == "po-1"

    def test_kernel_error_fields(self):
        try:
            raise OverReceiptError("Widget", Decimal("10"), Decimal("4"), Decimal("7"))
        except OverReceiptError:
            payload = json.loads(StructuredFormatter().format(_record(exc_info=sys.exc_info())))

        assert payload["exc_type"] == "OverReceiptError"
        assert payload["exc_code"] == "OVER_RECEIPT"
        assert payload["exc_product_name"] == "Widget"
        assert "traceback" in payload


class TestLogContext:

    def test_bind_restores_previous_values(self):
        LogContext.set(correlation_id="outer")

        with LogContext.bind(correlation_id="inner", actor_id="a-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "actor_id": "a-1"}

        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_none_values_ignored(self):
        with LogContext.bind(correlation_id="c-2", po_id=None):
            assert "po_id" not in LogContext.get_all()

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            with LogContext.bind(trace_id="t-1"):
                pass

        assert LogContext.get_all() == {}

    def test_context_is_per_thread(self):
        seen = {}

        def worker():
            seen["fields"] = LogContext.get_all()

        with LogContext.bind(correlation_id="main"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert seen["fields"] == {}

    def test_logger_namespace(self):
        assert get_logger("services.receiving").name == "procurement_kernel.services.receiving"
