"""
Toolgate Gateway

Transport-agnostic entry point for every tool call:

1. Validate the request shape (name + arguments)
2. Sanitize arguments (depth/size bounds, key filtering, string cleaning)
3. Resolve the tool by name or alias
4. Run the handler under the dispatch deadline
5. Return a ResponseEnvelope; nothing escapes as an exception

Every transport (pipe, HTTP) calls ``handle_raw`` with the decoded JSON
body, so all bindings share one policy.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from toolgate.config import GatewaySettings
from toolgate.exceptions import BadRequestError, ExecutionTimeoutError, NotSupportedError
from toolgate.gateway.envelope import ResponseEnvelope, failure
from toolgate.gateway.sanitizer import ArgumentSanitizer
from toolgate.gateway.security import SecurityClassifier, default_classifier
from toolgate.logging import get_logger
from toolgate.models import ToolRequest
from toolgate.services.filesystem import FilesystemService
from toolgate.services.shell import CommandPolicy, ShellSandbox
from toolgate.tools import ToolRegistry, fs_tool, shell_tool, simple_tools

logger = get_logger("toolgate.gateway")

CallListener = Callable[[str, dict], None]


class Gateway:
    """Validates, sanitizes and dispatches tool calls."""

    def __init__(
        self,
        registry: ToolRegistry,
        settings: GatewaySettings | None = None,
        sanitizer: ArgumentSanitizer | None = None,
        classifier: SecurityClassifier | None = None,
        sandbox: ShellSandbox | None = None,
    ):
        self.registry = registry
        self.settings = settings or GatewaySettings()
        self.classifier = classifier or default_classifier
        self.sanitizer = sanitizer or ArgumentSanitizer(classifier=self.classifier)
        self.sandbox = sandbox
        self._listeners: list[CallListener] = []

    def add_listener(self, listener: CallListener) -> None:
        """Register a callback invoked as ``listener(event, data)`` after each call."""
        self._listeners.append(listener)

    # ─── Dispatch ──────────────────────────────────────────

    async def handle_raw(self, body: Any) -> ResponseEnvelope:
        """Dispatch an already-decoded JSON body.

        Accepts ``{"name", "arguments"}`` or a ``{"params": {...}}`` wrapper.
        """
        if isinstance(body, dict) and isinstance(body.get("params"), dict):
            body = body["params"]
        if not isinstance(body, dict):
            return failure(BadRequestError("Request must be a JSON object"))
        try:
            request = ToolRequest.model_validate(body)
        except ValidationError as e:
            field = ".".join(str(p) for p in e.errors()[0]["loc"]) or None
            return failure(BadRequestError(f"Invalid tool request: {field or 'body'}", field=field))
        return await self.handle(request)

    async def handle(self, request: ToolRequest) -> ResponseEnvelope:
        call_id = uuid.uuid4().hex[:8]
        start = time.monotonic()
        envelope = await self._dispatch(request, call_id)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        extra = {"call_id": call_id, "tool_name": request.name, "duration_ms": duration_ms}
        if envelope.success:
            logger.info("Tool call succeeded", extra=extra)
        else:
            logger.info("Tool call failed: %s", envelope.error.code, extra=extra)
        self._notify(
            "toolCalled",
            {
                "callId": call_id,
                "name": request.name,
                "success": envelope.success,
                "durationMs": duration_ms,
                **({"code": envelope.error.code} if envelope.error else {}),
            },
        )
        return envelope

    def _notify(self, event: str, data: dict) -> None:
        for listener in self._listeners:
            try:
                listener(event, data)
            except Exception:
                logger.exception("Call listener failed for %s", event)

    async def _dispatch(self, request: ToolRequest, call_id: str) -> ResponseEnvelope:
        if not self.classifier.is_valid_tool_name(request.name):
            return failure(BadRequestError(f"Invalid tool name: {request.name}", field="name"))

        tool = self.registry.get(request.name)
        if tool is None:
            return failure(
                NotSupportedError(f"Unknown tool: {request.name}", details={"name": request.name}),
                hint="Call the tools listing to see what is available.",
            )

        arguments = self.sanitizer.sanitize(request.arguments)
        logger.debug("Dispatching %s", tool.name, extra={"call_id": call_id, "tool_name": tool.name})

        timeout_s = self.settings.dispatch_timeout_s
        try:
            return await asyncio.wait_for(tool.handler(arguments), timeout=timeout_s)
        except TimeoutError:
            return failure(
                ExecutionTimeoutError(
                    f"Tool '{tool.name}' timed out after {timeout_s}s",
                    timeout_ms=timeout_s * 1000,
                )
            )
        except Exception as e:
            logger.exception("Unhandled error in tool %s", tool.name, extra={"call_id": call_id})
            return failure(e)

    # ─── Introspection ─────────────────────────────────────

    def list_tools(self) -> list[dict]:
        return self.registry.get_schemas()

    # ─── Lifecycle ─────────────────────────────────────────

    def shutdown(self) -> None:
        """Kill any shell processes still running on behalf of a call."""
        if self.sandbox is not None:
            self.sandbox.terminate_all()
        logger.info("Gateway shut down")


def build_gateway(settings: GatewaySettings | None = None) -> Gateway:
    """Wire the default tool set against the given settings."""
    settings = settings or GatewaySettings.from_env()
    policy = CommandPolicy(
        allowed=settings.allowed_commands,
        blocked=settings.blocked_commands,
        provider_allowed=settings.provider_commands,
    )
    sandbox = ShellSandbox(
        policy=policy,
        workspace_root=settings.workspace_root,
        default_timeout_ms=settings.default_timeout_ms,
        default_max_output_bytes=settings.max_output_bytes,
        max_timeout_ms=int(settings.dispatch_timeout_s * 1000),
    )
    filesystem = FilesystemService(settings.workspace_root)

    registry = ToolRegistry()
    registry.register(fs_tool(filesystem))
    registry.register(shell_tool(sandbox))
    for tool in simple_tools(filesystem, sandbox):
        registry.register(tool)

    return Gateway(registry, settings=settings, sandbox=sandbox)
