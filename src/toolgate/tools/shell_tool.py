"""
Toolgate Shell Tool

The ``shell`` tool: execute, executeMany, executeSync, detectShells and
listAllowed. Every spawn goes through the ShellSandbox; this module only
validates the payload, turns it into ShellCommandOptions and maps policy
rejections and timeouts onto their error codes.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import ValidationError

from toolgate.exceptions import BadRequestError, ExecutionTimeoutError, PolicyRejectedError
from toolgate.gateway.validation import (
    ensure_boolean,
    ensure_string,
    ensure_string_array,
    optional_number,
)
from toolgate.models import ShellCommandOptions, ShellResult
from toolgate.services.shell import ShellSandbox
from toolgate.tools.base import ActionResult, ActionToolHandler
from toolgate.tools.registry import RegisteredTool, ToolDefinition

SHELL_ACTIONS = ("execute", "executeMany", "executeSync", "detectShells", "listAllowed")

SHELL_OPTION_PROPERTIES = {
    "shell": {"type": "string", "description": "bash, sh, zsh, powershell, pwsh or cmd"},
    "cwd": {"type": "string", "description": "Working directory, relative to the workspace"},
    "timeout": {"type": "number", "description": "Timeout in milliseconds"},
    "maxOutputSize": {"type": "number", "description": "Per-stream output cap in bytes"},
    "input": {"type": "string", "description": "Data written to stdin"},
    "continueOnError": {"type": "boolean"},
    "isProviderCommand": {"type": "boolean"},
    "adaptive": {"type": "boolean", "description": "Rewrite ls/dir style synonyms for this platform"},
}

SHELL_TOOL_DEFINITION = ToolDefinition(
    name="shell",
    description="Run allow-listed shell commands with timeout and output limits.",
    input_schema={
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": list(SHELL_ACTIONS)},
            "payload": {
                "type": "object",
                "properties": {
                    "command": {"type": "string"},
                    "commands": {"type": "array", "items": {"type": "string"}},
                    **SHELL_OPTION_PROPERTIES,
                },
            },
        },
        "required": ["action"],
    },
)


def parse_shell_options(source: dict[str, Any], prefix: str = "") -> ShellCommandOptions:
    """Build ShellCommandOptions from a payload.

    Accepts both ``timeout``/``maxOutputSize`` and ``timeoutMs``/``maxOutputBytes``.
    """
    values: dict[str, Any] = {}
    for key in ("shell", "cwd"):
        if source.get(key) is not None:
            values[key] = ensure_string(source[key], f"{prefix}{key}")
    for key, target in (
        ("timeout", "timeout_ms"),
        ("timeoutMs", "timeout_ms"),
        ("maxOutputSize", "max_output_bytes"),
        ("maxOutputBytes", "max_output_bytes"),
    ):
        number = optional_number(source.get(key), f"{prefix}{key}")
        if number is not None:
            values[target] = int(number)
    if isinstance(source.get("input"), str):
        values["input"] = source["input"]
    for key, target in (
        ("continueOnError", "continue_on_error"),
        ("isProviderCommand", "is_provider_command"),
        ("adaptive", "adaptive"),
    ):
        if source.get(key) is not None:
            values[target] = ensure_boolean(source[key], f"{prefix}{key}")

    try:
        return ShellCommandOptions(**values)
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise BadRequestError(
            f"Invalid shell options: {', '.join(fields)}",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


async def run_checked(
    sandbox: ShellSandbox,
    command: str,
    options: ShellCommandOptions,
    blocking: bool = False,
) -> ShellResult:
    """Run one command, raising for policy rejection and timeouts.

    Any other failure (non-zero exit, spawn error) is returned in the result.
    """
    prepared, decision = sandbox.prepare(command, options)
    if not decision.allowed:
        raise PolicyRejectedError(prepared, decision.reason)

    if blocking:
        result = await asyncio.to_thread(sandbox.run_prepared_sync, prepared, options)
    else:
        result = await sandbox.run_prepared(prepared, options)

    if result.timed_out:
        raise ExecutionTimeoutError(
            result.error or "Command timed out",
            timeout_ms=options.timeout_ms,
            details={"result": result.to_wire()},
        )
    return result


class ShellToolHandler(ActionToolHandler):
    """Routes ``shell`` actions to the sandbox."""

    tool_name = "shell"
    ACTIONS = SHELL_ACTIONS

    def __init__(self, sandbox: ShellSandbox):
        self.sandbox = sandbox

    async def _action_execute(self, payload: dict[str, Any]) -> Any:
        command = ensure_string(payload.get("command"), "payload.command")
        options = parse_shell_options(payload, "payload.")
        return await run_checked(self.sandbox, command, options)

    async def _action_executeMany(self, payload: dict[str, Any]) -> Any:
        commands = ensure_string_array(payload.get("commands"), "payload.commands")
        if not commands:
            raise BadRequestError("payload.commands must not be empty", field="payload.commands")
        options = parse_shell_options(payload, "payload.")
        results = await self.sandbox.execute_many(commands, options)
        if len(results) < len(commands):
            return ActionResult(
                results,
                hint=f"Stopped after step {len(results)} of {len(commands)}; set continueOnError to run every step.",
            )
        return results

    async def _action_executeSync(self, payload: dict[str, Any]) -> Any:
        command = ensure_string(payload.get("command"), "payload.command")
        options = parse_shell_options(payload, "payload.")
        return await run_checked(self.sandbox, command, options, blocking=True)

    def _action_detectShells(self, payload: dict[str, Any]) -> Any:
        return self.sandbox.detect_shells()

    def _action_listAllowed(self, payload: dict[str, Any]) -> Any:
        return {"commands": self.sandbox.get_allowed_commands()}


def shell_tool(sandbox: ShellSandbox) -> RegisteredTool:
    return RegisteredTool(SHELL_TOOL_DEFINITION, ShellToolHandler(sandbox), aliases=["toolgate.shell"])
