"""Tests for structured logging configuration."""

import io
import json
import logging

from releasegate.app.core.config import settings
from releasegate.app.core.logging import (
    BelowErrorFilter,
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)


def make_record(msg: str = "Test message", **attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_context_fields_and_data(self):
        record = make_record(
            "API response sent",
            request_id="req-1",
            function_name="github-proxy",
            duration_ms=12,
            data={"status_code": 200},
        )
        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["function_name"] == "github-proxy"
        assert data["duration_ms"] == 12
        assert data["data"] == {"status_code": 200}

    def test_none_context_fields_are_omitted(self):
        record = make_record()
        ContextFilter().filter(record)
        data = json.loads(JSONFormatter().format(record))
        assert "request_id" not in data
        assert "user_id" not in data

    def test_unknown_attributes_go_to_extra(self):
        data = json.loads(JSONFormatter().format(make_record(debug_mode=True)))
        assert data["extra"] == {"debug_mode": True}

    def test_exception_is_formatted(self):
        try:
            raise ValueError("broken")
        except ValueError:
            import sys

            record = logging.LogRecord(
                "test", logging.ERROR, "test.py", 1, "failed", (), sys.exc_info()
            )
        data = json.loads(JSONFormatter().format(record))
        assert any("ValueError: broken" in line for line in data["exception"])


class TestContextFilter:
    def test_adds_defaults(self):
        record = make_record()
        assert ContextFilter().filter(record) is True
        assert record.request_id is None
        assert record.function_name is None

    def test_keeps_existing_values(self):
        record = make_record(request_id="abc")
        ContextFilter().filter(record)
        assert record.request_id == "abc"


class TestLoggingConfig:
    def test_json_format_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "json")
        monkeypatch.setattr(settings, "debug", False)
        monkeypatch.setattr(settings, "environment", "production")
        monkeypatch.setattr(settings, "log_level", "warning")

        config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["releasegate"]["level"] == "WARNING"

    def test_debug_logging_forces_debug_level(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "development")
        config = get_logging_config()
        assert config["loggers"]["releasegate"]["level"] == "DEBUG"

    def test_text_formats(self, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "structured")
        assert get_logging_config()["handlers"]["console"]["formatter"] == "structured"
        monkeypatch.setattr(settings, "log_format", "text")
        assert get_logging_config()["handlers"]["console"]["formatter"] == "standard"

    def test_each_record_is_written_once(self, monkeypatch):
        monkeypatch.setattr(settings, "log_level", "INFO")
        monkeypatch.setattr(settings, "debug", False)
        monkeypatch.setattr(settings, "environment", "production")
        config = get_logging_config()
        filters = {"context": ContextFilter(), "below_error": BelowErrorFilter()}
        streams = {"console": io.StringIO(), "error_console": io.StringIO()}

        logger = logging.getLogger("releasegate.tests.split")
        logger.propagate = False
        logger.setLevel(logging.INFO)
        for name in config["loggers"]["releasegate"]["handlers"]:
            handler_config = config["handlers"][name]
            handler = logging.StreamHandler(streams[name])
            handler.setLevel(handler_config["level"])
            for filter_name in handler_config["filters"]:
                handler.addFilter(filters[filter_name])
            logger.addHandler(handler)

        try:
            logger.info("fine")
            logger.warning("careful")
            logger.error("boom")
        finally:
            logger.handlers.clear()

        assert streams["console"].getvalue().splitlines() == ["fine", "careful"]
        assert streams["error_console"].getvalue().splitlines() == ["boom"]


def test_get_logger_default_name():
    assert get_logger().name == "releasegate"


def test_get_log_context_drops_none():
    assert get_log_context(request_id="r", user_id=None, step="x") == {
        "request_id": "r",
        "step": "x",
    }
