"""Unit tests for logging infrastructure."""

import json
import logging
import sys

from src.utils.logger import (
    QUIET_LOGGERS,
    JSONFormatter,
    RichTextFormatter,
    get_logger,
    get_request_logger,
    logger,
    set_level,
)


def _record(level=logging.INFO, msg="Test message", name="test_logger", exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSONFormatter produces valid JSON output."""

    def test_json_formatter_outputs_valid_json(self):
        output = JSONFormatter().format(_record())
        parsed = json.loads(output)

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test_logger"
        assert parsed["message"] == "Test message"
        assert "timestamp" in parsed

    def test_json_formatter_includes_exception_traceback(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record(level=logging.ERROR, msg="Error occurred", exc_info=sys.exc_info())

        parsed = json.loads(JSONFormatter().format(record))

        assert "exception" in parsed
        assert "ValueError" in parsed["exception"]

    def test_json_formatter_includes_request_context_fields(self):
        record = _record()
        record.request_id = "req-123"
        record.client_id = "web-42"
        record.specificity = "very_vague"

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["request_id"] == "req-123"
        assert parsed["client_id"] == "web-42"
        assert parsed["specificity"] == "very_vague"

    def test_json_formatter_omits_absent_context_fields(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert "request_id" not in parsed
        assert "user_id" not in parsed


class TestRichTextFormatter:
    """Test RichTextFormatter produces colored text output."""

    def test_rich_text_formatter_includes_emoji_icon(self):
        formatter = RichTextFormatter()
        for level, icon in [
            (logging.DEBUG, "🔍"),
            (logging.INFO, "ℹ️"),
            (logging.WARNING, "⚠️"),
            (logging.ERROR, "❌"),
        ]:
            assert icon in formatter.format(_record(level=level))

    def test_rich_text_formatter_includes_level_logger_and_message(self):
        output = RichTextFormatter().format(_record(name="my_logger", msg="Custom message"))
        assert "INFO" in output
        assert "my_logger" in output
        assert "Custom message" in output

    def test_rich_text_formatter_tags_request_id(self):
        record = _record()
        record.request_id = "a1b2c3"
        assert "[a1b2c3]" in RichTextFormatter().format(record)

    def test_rich_text_formatter_includes_exception_traceback(self):
        try:
            raise RuntimeError("Test error")
        except RuntimeError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())

        output = RichTextFormatter().format(record)
        assert "RuntimeError" in output
        assert "Test error" in output


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_returns_same_configured_instance(self):
        first = get_logger("test_module_singleton")
        second = get_logger("test_module_singleton")
        assert first is second
        assert len(first.handlers) == 1

    def test_get_logger_respects_log_type_json(self, monkeypatch):
        test_name = "test_json_logger"
        logging.getLogger(test_name).handlers.clear()
        monkeypatch.setenv("LOG_TYPE", "json")

        test_logger = get_logger(test_name)

        assert isinstance(test_logger.handlers[0].formatter, JSONFormatter)

    def test_get_logger_defaults_to_text(self, monkeypatch):
        test_name = "test_default_type"
        logging.getLogger(test_name).handlers.clear()
        monkeypatch.delenv("LOG_TYPE", raising=False)

        test_logger = get_logger(test_name)

        assert isinstance(test_logger.handlers[0].formatter, RichTextFormatter)

    def test_invalid_log_level_defaults_to_info(self, monkeypatch):
        test_name = "test_invalid_level"
        logging.getLogger(test_name).handlers.clear()
        monkeypatch.setenv("LOG_LEVEL", "INVALID")

        assert get_logger(test_name).level == logging.INFO


class TestRequestLogger:
    """Test request-scoped logger adapter."""

    def test_request_logger_carries_context(self):
        adapter = get_request_logger("req-9", client_id="web-1", intent="recipe_request")

        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.logger is logger
        assert adapter.extra == {"request_id": "req-9", "client_id": "web-1", "intent": "recipe_request"}

    def test_request_logger_without_client(self):
        adapter = get_request_logger("req-10")
        assert "client_id" not in adapter.extra

    def test_request_logger_fields_reach_json_output(self):
        captured = []

        class _Capture(logging.Handler):
            def emit(self, record):
                captured.append(JSONFormatter().format(record))

        handler = _Capture(level=logging.DEBUG)
        previous_level = logger.level
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        try:
            get_request_logger("req-11", client_id="web-2").info("hello")
        finally:
            logger.removeHandler(handler)
            logger.setLevel(previous_level)

        parsed = json.loads(captured[-1])
        assert parsed["request_id"] == "req-11"
        assert parsed["client_id"] == "web-2"
        assert parsed["message"] == "hello"


def test_module_logger_name():
    assert logger.name == "recipe_service"
    assert len(logger.handlers) > 0


def test_call_time_extra_merges_with_adapter_context():
    captured = []

    class _Capture(logging.Handler):
        def emit(self, record):
            captured.append(json.loads(JSONFormatter().format(record)))

    handler = _Capture(level=logging.DEBUG)
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        get_request_logger("req-12").info("done", extra={"model_id": "cheap-model", "duration_ms": 42})
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    assert captured[-1]["request_id"] == "req-12"
    assert captured[-1]["model_id"] == "cheap-model"
    assert captured[-1]["duration_ms"] == 42


def test_set_level_updates_logger_and_handlers():
    name = "test_set_level"
    logging.getLogger(name).handlers.clear()
    instance = get_logger(name)

    set_level(logging.ERROR, name)

    assert instance.level == logging.ERROR
    assert all(h.level == logging.ERROR for h in instance.handlers)


def test_provider_sdk_loggers_are_quieted():
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
