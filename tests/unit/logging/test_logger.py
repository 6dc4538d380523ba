# tests/unit/logging/test_logger.py - v2
"""Tests for logging/logger.py - MDC rendering, formatters, logger factory."""

from __future__ import annotations

import io
import json
import logging
import logging.handlers
import queue

from structured_mdc.logging import context
from structured_mdc.logging.context import JSON_PREFIX
from structured_mdc.logging.logger import (
    MDC_RECORD_ATTR,
    JsonFormatter,
    TextFormatter,
    filter_mdc,
    get_logger,
    install_mdc_record_factory,
    record_mdc,
    render_mdc,
    setup_logging,
)
from structured_mdc.logging.mdc_context import MdcContext


def _record(msg: str = "Hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    record.__dict__.update(extra)
    return record


class TestRenderMdc:
    def test_structured_and_plain_entries(self):
        entries = {"x": JSON_PREFIX + '{"a":1}', "y": "plain"}
        assert render_mdc(entries) == {"x": {"a": 1}, "y": "plain"}

    def test_structured_scalar(self):
        assert render_mdc({"s": JSON_PREFIX + '"A"'}) == {"s": "A"}

    def test_invalid_structured_falls_back_to_text(self):
        assert render_mdc({"bad": JSON_PREFIX + "{not json"}) == {"bad": "{not json"}

    def test_include_then_exclude(self):
        entries = {"a": "1", "b": "2", "c": "3"}
        assert filter_mdc(entries, include_keys=["a", "b"], exclude_keys=["b"]) == {"a": "1"}

    def test_exclude_only(self):
        assert render_mdc({"a": "1", "b": "2"}, exclude_keys={"a"}) == {"b": "2"}

    def test_no_entries(self):
        assert render_mdc({}) == {}


class TestJsonFormatter:
    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed

    def test_mdc_at_top_level(self):
        with MdcContext.of({"id": 7, "lines": 2}, "order"):
            context.put("request_id", "r-1")
            output = JsonFormatter().format(_record())
        parsed = json.loads(output)
        assert parsed["order"] == {"id": 7, "lines": 2}
        assert parsed["request_id"] == "r-1"
        assert JSON_PREFIX not in output

    def test_core_fields_win(self):
        context.put("message", "from mdc")
        parsed = json.loads(JsonFormatter().format(_record("real")))
        assert parsed["message"] == "real"

    def test_nested_field_name(self):
        with MdcContext.of("A", "k"):
            parsed = json.loads(JsonFormatter(mdc_field_name="mdc").format(_record()))
        assert parsed["mdc"] == {"k": "A"}
        assert "k" not in parsed

    def test_filters(self):
        context.put("a", "1")
        context.put("b", "2")
        parsed = json.loads(JsonFormatter(exclude_mdc_keys=["a"]).format(_record()))
        assert "a" not in parsed and parsed["b"] == "2"
        parsed = json.loads(JsonFormatter(include_mdc_keys=["a"]).format(_record()))
        assert parsed["a"] == "1" and "b" not in parsed

    def test_extra_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"n": 1})))
        assert parsed["data"] == {"n": 1}


class TestTextFormatter:
    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_mdc_rendered_without_prefix(self):
        with MdcContext.of("A", "k"):
            output = TextFormatter().format(_record())
        assert 'k="A"' in output
        assert JSON_PREFIX not in output


class TestRecordCapture:
    def test_record_keeps_mdc_after_scope_closes(self):
        with MdcContext.of("A", "k"):
            record = logging.makeLogRecord({"msg": "inside"})
        assert getattr(record, MDC_RECORD_ATTR) == {"k": JSON_PREFIX + '"A"'}
        assert json.loads(JsonFormatter().format(record))["k"] == "A"
        assert 'k="A"' in TextFormatter().format(record)

    def test_captured_mdc_wins_over_live_store(self):
        record = _record(**{MDC_RECORD_ATTR: {"k": "captured"}})
        context.put("k", "live")
        assert record_mdc(record) == {"k": "captured"}

    def test_foreign_record_reads_live_store(self):
        record = _record()
        context.put("k", "live")
        assert record_mdc(record) == {"k": "live"}

    def test_install_is_idempotent(self):
        install_mdc_record_factory()
        factory = logging.getLogRecordFactory()
        install_mdc_record_factory()
        assert logging.getLogRecordFactory() is factory

    def test_queue_listener_output_keeps_mdc(self):
        log_queue: queue.Queue = queue.Queue()
        stream = io.StringIO()
        target = logging.StreamHandler(stream)
        target.setFormatter(JsonFormatter())
        listener = logging.handlers.QueueListener(log_queue, target)
        root = logging.getLogger("structured_mdc")
        root.addHandler(logging.handlers.QueueHandler(log_queue))
        root.setLevel(logging.INFO)

        listener.start()
        try:
            with MdcContext.of({"id": 1}, "request"):
                get_logger("queued").info("via queue")
        finally:
            listener.stop()

        (line,) = [json.loads(x) for x in stream.getvalue().splitlines() if x]
        assert line["message"] == "via queue"
        assert line["request"] == {"id": 1}


class TestGetLogger:
    def test_returns_logger(self):
        logger = get_logger("test_module")
        assert logger.name == "structured_mdc.test_module"


class TestSetupLogging:
    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json", mdc_field_name="mdc")
        root = logging.getLogger("structured_mdc")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, JsonFormatter)
        assert formatter.mdc_field_name == "mdc"

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("structured_mdc")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("structured_mdc").handlers) == 1
