"""
Toolgate — Tool Invocation Gateway for AI Agents

Exposes filesystem and shell capabilities to an untrusted agent through
one validated, sanitized, policy-checked dispatch path.

Usage:
    from toolgate import build_gateway

    gateway = build_gateway()
    envelope = await gateway.handle_raw({
        "name": "shell",
        "arguments": {"action": "execute", "payload": {"command": "git status"}},
    })
"""

__version__ = "0.3.0"

from toolgate.config import GatewaySettings  # noqa: E402
from toolgate.exceptions import (  # noqa: E402
    BadRequestError,
    ConfigurationError,
    ExecutionTimeoutError,
    InternalError,
    NotSupportedError,
    PolicyRejectedError,
    ToolgateError,
)
from toolgate.gateway.dispatcher import Gateway, build_gateway  # noqa: E402
from toolgate.gateway.envelope import ResponseEnvelope, failure, success  # noqa: E402
from toolgate.models import ShellCommandOptions, ShellResult, ToolRequest  # noqa: E402

__all__ = [
    "__version__",
    # Gateway
    "Gateway",
    "GatewaySettings",
    "build_gateway",
    # Envelope
    "ResponseEnvelope",
    "failure",
    "success",
    # Models
    "ShellCommandOptions",
    "ShellResult",
    "ToolRequest",
    # Exceptions
    "BadRequestError",
    "ConfigurationError",
    "ExecutionTimeoutError",
    "InternalError",
    "NotSupportedError",
    "PolicyRejectedError",
    "ToolgateError",
]
