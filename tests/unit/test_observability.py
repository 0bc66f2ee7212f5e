"""Tests for the observability package: structured logger and metrics hook."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from plone_mcp.errors import PloneConfigError
from plone_mcp.observability import (
    MetricsHook,
    NoopMetricsHook,
    StructuredFormatter,
    configure_logging,
    get_logger,
)


def _record(msg, level=logging.INFO, exc_info=None, extra_fields=None):
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


class TestStructuredFormatter:
    def test_basic_keys(self):
        result = json.loads(StructuredFormatter().format(_record("hello")))
        assert result["message"] == "hello"
        assert result["level"] == "INFO"
        assert result["logger"] == "test"
        assert "ts" in result

    def test_extra_fields_merged(self):
        record = _record("staged", extra_fields={"op": "stage", "blocks": 3})
        result = json.loads(StructuredFormatter().format(record))
        assert result["op"] == "stage"
        assert result["blocks"] == 3

    def test_extra_fields_cannot_replace_core_keys(self):
        record = _record("real", extra_fields={"message": "fake", "level": "NONE", "op": "x"})
        result = json.loads(StructuredFormatter().format(record))
        assert result["message"] == "real"
        assert result["level"] == "INFO"
        assert result["op"] == "x"

    def test_exception_included(self):
        try:
            raise ValueError("bad block")
        except ValueError:
            exc_info = sys.exc_info()
        result = json.loads(StructuredFormatter().format(_record("failed", exc_info=exc_info)))
        assert "ValueError: bad block" in result["exception"]

    def test_non_serializable_values_stringified(self):
        record = _record("x", extra_fields={"path": object()})
        result = json.loads(StructuredFormatter().format(record))
        assert result["path"].startswith("<object object")


@pytest.fixture
def stream():
    buffer = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=buffer)
    yield buffer
    configure_logging()


class TestLogging:
    def test_child_logger_writes_json(self, stream):
        log = get_logger("plone_mcp.test.stream")
        log.info("Request complete", extra={"extra_fields": {"status_code": 200}})
        line = json.loads(stream.getvalue().strip())
        assert line["logger"] == "plone_mcp.test.stream"
        assert line["message"] == "Request complete"
        assert line["status_code"] == 200

    def test_one_handler_after_reconfiguring(self, stream):
        root = configure_logging(stream=io.StringIO())
        configure_logging(stream=stream)
        json_handlers = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert len(json_handlers) == 1
        assert json_handlers[0].stream is stream
        assert root.propagate is False

    def test_level_filters(self, stream):
        configure_logging(level="warning", stream=stream)
        log = get_logger("plone_mcp.test.filter")
        log.info("hidden")
        log.warning("shown")
        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_level_from_environment(self, stream, monkeypatch):
        monkeypatch.setenv("PLONE_MCP_LOG_LEVEL", "error")
        root = configure_logging(stream=stream)
        assert root.level == logging.ERROR

    def test_unknown_level_rejected(self, stream):
        with pytest.raises(PloneConfigError, match="Unknown log level"):
            configure_logging(level="chatty", stream=stream)


class TestMetricsHook:
    def test_noop_satisfies_protocol(self):
        hook = NoopMetricsHook()
        assert isinstance(hook, MetricsHook)
        hook.increment("plone_mcp.requests_total", tags={"method": "GET"})
        hook.timing("plone_mcp.request_duration_ms", 1.5)

    def test_custom_hook_satisfies_protocol(self):
        class Recorder:
            def increment(self, name, value=1, tags=None):
                pass

            def timing(self, name, ms, tags=None):
                pass

        assert isinstance(Recorder(), MetricsHook)

    def test_incomplete_hook_rejected(self):
        class CountOnly:
            def increment(self, name, value=1, tags=None):
                pass

        assert not isinstance(CountOnly(), MetricsHook)
