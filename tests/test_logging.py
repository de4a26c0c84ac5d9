"""Tests for Toolgate structured logging."""

import json
import logging
import sys

from toolgate.logging import ToolgateFormatter, configure_logging, get_logger


def _record(name="toolgate", level=logging.INFO, msg="Tool call succeeded"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestToolgateFormatter:
    def test_human_readable_format(self):
        formatter = ToolgateFormatter(json_output=False)
        output = formatter.format(_record(name="toolgate.gateway"))
        assert "toolgate.gateway" in output
        assert "Tool call succeeded" in output
        assert "INFO" in output

    def test_json_format(self):
        formatter = ToolgateFormatter(json_output=True)
        output = formatter.format(_record(name="toolgate.shell", level=logging.WARNING, msg="Rejected"))
        data = json.loads(output)
        assert data["logger"] == "toolgate.shell"
        assert data["message"] == "Rejected"
        assert data["level"] == "WARNING"
        assert "timestamp" in data

    def test_extra_fields_in_human_format(self):
        formatter = ToolgateFormatter(json_output=False)
        record = _record()
        record.call_id = "a1b2c3d4"  # type: ignore[attr-defined]
        record.tool_name = "fs"  # type: ignore[attr-defined]
        output = formatter.format(record)
        assert "call_id=a1b2c3d4" in output
        assert "tool_name=fs" in output

    def test_extra_fields_in_json(self):
        formatter = ToolgateFormatter(json_output=True)
        record = _record()
        record.duration_ms = 12.5  # type: ignore[attr-defined]
        data = json.loads(formatter.format(record))
        assert data["duration_ms"] == 12.5

    def test_unknown_extras_ignored(self):
        formatter = ToolgateFormatter(json_output=True)
        record = _record()
        record.password = "secret"  # type: ignore[attr-defined]
        assert "password" not in json.loads(formatter.format(record))


class TestGetLogger:
    def test_returns_logger(self):
        logger = get_logger("toolgate.test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "toolgate.test"

    def test_default_name(self):
        assert get_logger().name == "toolgate"


class TestConfigureLogging:
    def test_configure_levels(self):
        configure_logging(level="DEBUG")
        assert get_logger("toolgate").level == logging.DEBUG
        configure_logging(level="INFO")
        assert get_logger("toolgate").level == logging.INFO

    def test_logs_go_to_stderr(self):
        configure_logging()
        handlers = get_logger("toolgate").handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_configure_json(self):
        configure_logging(json_output=True)
        formatter = get_logger("toolgate").handlers[0].formatter
        assert isinstance(formatter, ToolgateFormatter)
        assert formatter._json_output is True

        # Reset to human format
        configure_logging(json_output=False)
