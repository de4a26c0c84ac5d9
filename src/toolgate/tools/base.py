"""
Toolgate Action Dispatch

Shared contract for tools that expose a closed action enum:

1. ``action`` must be a non-empty string (BadRequest otherwise)
2. ``action`` must be in the tool's ACTIONS (NotSupported otherwise);
   this check precedes any payload validation, so an unknown action can
   never partially execute
3. ``payload`` defaults to {} and must be an object
4. The subclass validates fields and calls its collaborator; the result
   is wrapped in a success envelope, any exception in a failure envelope
"""

from __future__ import annotations

import asyncio
from typing import Any, ClassVar

from toolgate.exceptions import BadRequestError, NotSupportedError
from toolgate.gateway.envelope import ResponseEnvelope, failure, success
from toolgate.gateway.validation import ensure_object
from toolgate.logging import get_logger

logger = get_logger("toolgate.tools")


class ActionResult:
    """Capability output plus optional guidance for the agent."""

    __slots__ = ("data", "hint", "next_steps")

    def __init__(self, data: Any, hint: str | None = None, next_steps: list[str] | None = None):
        self.data = data
        self.hint = hint
        self.next_steps = next_steps


class ActionToolHandler:
    """Base class for tools routed by an ``action`` field."""

    tool_name: ClassVar[str] = ""
    ACTIONS: ClassVar[tuple[str, ...]] = ()

    async def __call__(self, arguments: dict[str, Any]) -> ResponseEnvelope:
        try:
            action, payload = self.parse(arguments)
            result = await self.run_action(action, payload)
        except Exception as e:
            logger.info(
                "Action failed: %s",
                e,
                extra={"tool_name": self.tool_name, "action": arguments.get("action")},
            )
            return failure(e)

        if isinstance(result, ActionResult):
            return success(result.data, hint=result.hint, next_steps=result.next_steps)
        return success(result)

    def parse(self, arguments: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        action = arguments.get("action")
        if not isinstance(action, str) or not action.strip():
            raise BadRequestError("action must be a non-empty string", field="action")
        action = action.strip()
        if action not in self.ACTIONS:
            raise NotSupportedError(
                f"Unsupported {self.tool_name} action: {action}",
                details={"action": action, "supported": list(self.ACTIONS)},
            )
        raw_payload = arguments.get("payload")
        payload = ensure_object(raw_payload, "payload") if raw_payload is not None else {}
        return action, payload

    async def run_action(self, action: str, payload: dict[str, Any]) -> Any:
        method = getattr(self, f"_action_{action}")
        result = method(payload)
        if asyncio.iscoroutine(result):
            result = await result
        return result


class SimpleToolHandler:
    """Base class for single-purpose tools that take flat arguments."""

    tool_name: ClassVar[str] = ""

    async def __call__(self, arguments: dict[str, Any]) -> ResponseEnvelope:
        try:
            result = await self.run(arguments)
        except Exception as e:
            logger.info("Tool failed: %s", e, extra={"tool_name": self.tool_name})
            return failure(e)
        return success(result)

    async def run(self, arguments: dict[str, Any]) -> Any:
        raise NotImplementedError
