"""
Toolgate Structured Logging

Provides a configured logger for the gateway using stdlib logging
with structured context. Logs always go to stderr: stdout belongs to
the pipe transport.

Usage:
    from toolgate.logging import get_logger

    logger = get_logger("toolgate.gateway")
    logger.info("Tool call completed", extra={"call_id": "k3x9", "tool_name": "fs"})

For production, configure with JSON output:
    from toolgate.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

STRUCTURED_FIELDS = (
    "call_id",
    "tool_name",
    "action",
    "transport",
    "client_id",
    "client_count",
    "duration_ms",
    "rule",
)


class ToolgateFormatter(logging.Formatter):
    """Structured log formatter for Toolgate.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {
            k: v
            for k, v in log_data.items()
            if k not in ("timestamp", "level", "logger", "message", "exception")
        }
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = f"[{log_data['timestamp']}] {record.levelname:8s} {record.name}: {record.getMessage()}{extra_str}"
        if "exception" in log_data:
            line += "\n" + log_data["exception"]
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure Toolgate logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON format (for log shipping).
    """
    root_logger = logging.getLogger("toolgate")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ToolgateFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    # caplog relies on propagation
    root_logger.propagate = True


def get_logger(name: str = "toolgate") -> logging.Logger:
    """Get a Toolgate logger instance.

    Args:
        name: Logger name (usually module path like "toolgate.gateway").
    """
    return logging.getLogger(name)
