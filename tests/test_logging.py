"""Tests for structured logging configuration."""

import json
import logging

from quizgate.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)


def _record(msg="Test message", **extra):
    record = logging.LogRecord(
        name="quizgate.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "quizgate.test"
        assert data["message"] == "Test message"
        assert data["source"]["file"] == "test.py"
        assert "timestamp" in data

    def test_context_fields_promoted(self):
        data = json.loads(
            JSONFormatter().format(_record(request_id="req-1", client_ip="10.0.0.1", access_code="ABC"))
        )

        assert data["request_id"] == "req-1"
        assert data["client_ip"] == "10.0.0.1"
        assert data["access_code"] == "ABC"
        assert "extra" not in data

    def test_other_extras_nested(self):
        data = json.loads(JSONFormatter().format(_record(alert={"failedAttempts": 60})))

        assert data["extra"]["alert"] == {"failedAttempts": 60}

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            import sys

            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert any("ValueError: bad" in line for line in data["exception"])


def test_context_filter_sets_defaults():
    record = _record()

    assert ContextFilter().filter(record)
    assert record.request_id is None
    assert record.client_ip is None


def test_get_log_context_drops_none():
    assert get_log_context(client_ip="10.0.0.1", path="/api") == {"client_ip": "10.0.0.1", "path": "/api"}


def test_logging_config_formats():
    assert get_logging_config("DEBUG", "json")["handlers"]["console"]["formatter"] == "json"
    assert get_logging_config("INFO", "structured")["handlers"]["console"]["formatter"] == "structured"
    config = get_logging_config("warning", "text")
    assert config["handlers"]["console"]["formatter"] == "standard"
    assert config["loggers"]["quizgate"]["level"] == "WARNING"


def test_get_logger_names():
    assert get_logger().name == "quizgate"
    assert get_logger("quizgate.app.services").name == "quizgate.app.services"
