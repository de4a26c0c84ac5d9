"""
Toolgate Custom Exceptions

Structured exception hierarchy for the tool invocation gateway.
All Toolgate-specific exceptions inherit from ToolgateError and carry
a stable ``code`` that the response envelope surfaces verbatim.

Exception hierarchy:
    ToolgateError
    +-- BadRequestError          (missing/invalid action, malformed JSON, field validation)
    |   +-- ConfigurationError   (invalid gateway settings)
    +-- NotSupportedError        (unknown tool, action or route)
    +-- PolicyRejectedError      (command blocked or not allow-listed)
    +-- ExecutionTimeoutError    (execution exceeded its deadline)
    +-- InternalError            (unclassified collaborator failure)
"""

from __future__ import annotations


class ToolgateError(Exception):
    """Base exception for all Toolgate errors."""

    code = "InternalError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BadRequestError(ToolgateError):
    """Raised when a request or one of its fields fails validation.

    Raised before any capability executes. When a specific field is at
    fault, its dotted path (e.g. ``payload.source``) is in ``details["field"]``.
    """

    code = "BadRequest"

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        merged = dict(details or {})
        if field is not None:
            merged["field"] = field
        super().__init__(message, details=merged)
        self.field = field


class ConfigurationError(BadRequestError):
    """Raised when gateway settings cannot be parsed."""


class NotSupportedError(ToolgateError):
    """Raised for an unknown tool, an action outside a tool's enum, or an unmatched route."""

    code = "NotSupported"


class PolicyRejectedError(ToolgateError):
    """Raised when the shell policy refuses to spawn a command."""

    code = "PolicyRejected"

    def __init__(self, command: str, reason: str, details: dict | None = None):
        super().__init__(
            reason,
            details={"command": command, **(details or {})},
        )
        self.command = command
        self.reason = reason


class ExecutionTimeoutError(ToolgateError):
    """Raised when a tool call or a command exceeds its deadline."""

    code = "Timeout"

    def __init__(self, message: str, timeout_ms: float | None = None, details: dict | None = None):
        merged = dict(details or {})
        if timeout_ms is not None:
            merged["timeout_ms"] = timeout_ms
        super().__init__(message, details=merged)
        self.timeout_ms = timeout_ms


class InternalError(ToolgateError):
    """Raised for unclassified failures from a collaborator."""

    code = "InternalError"
