"""Single-purpose tools with flat arguments: file_read, file_write, shell_execute."""

from __future__ import annotations

import asyncio
from typing import Any

from toolgate.gateway.validation import ensure_choice, ensure_string, optional_number
from toolgate.services.filesystem import WRITE_MODES, FilesystemService, normalize_encoding
from toolgate.services.shell import ShellSandbox
from toolgate.tools.base import SimpleToolHandler
from toolgate.tools.registry import RegisteredTool, ToolDefinition
from toolgate.tools.shell_tool import SHELL_OPTION_PROPERTIES, parse_shell_options, run_checked

FILE_READ_DEFINITION = ToolDefinition(
    name="file_read",
    description="Read a file inside the workspace.",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "encoding": {"type": "string", "description": "utf8, utf16le, latin1, ascii, hex or base64"},
            "maxBytes": {"type": "number"},
        },
        "required": ["path"],
    },
)

FILE_WRITE_DEFINITION = ToolDefinition(
    name="file_write",
    description="Write or append to a file inside the workspace.",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "content": {"type": "string"},
            "encoding": {"type": "string"},
            "mode": {"type": "string", "enum": list(WRITE_MODES)},
        },
        "required": ["path", "content"],
    },
)

SHELL_EXECUTE_DEFINITION = ToolDefinition(
    name="shell_execute",
    description="Run one allow-listed shell command.",
    input_schema={
        "type": "object",
        "properties": {"command": {"type": "string"}, **SHELL_OPTION_PROPERTIES},
        "required": ["command"],
    },
)


class FileReadHandler(SimpleToolHandler):
    tool_name = "file_read"

    def __init__(self, service: FilesystemService):
        self.service = service

    async def run(self, arguments: dict[str, Any]) -> Any:
        path = ensure_string(arguments.get("path"), "path")
        encoding = _encoding(arguments)
        max_bytes = optional_number(arguments.get("maxBytes"), "maxBytes")
        return await asyncio.to_thread(
            self.service.read_file_content,
            path,
            encoding,
            int(max_bytes) if max_bytes and max_bytes > 0 else None,
        )


class FileWriteHandler(SimpleToolHandler):
    tool_name = "file_write"

    def __init__(self, service: FilesystemService):
        self.service = service

    async def run(self, arguments: dict[str, Any]) -> Any:
        path = ensure_string(arguments.get("path"), "path")
        content = arguments.get("content")
        # Content is written verbatim, so no strip.
        ensure_string(content, "content", allow_empty=True)
        encoding = _encoding(arguments)
        mode = "overwrite"
        if arguments.get("mode") is not None:
            mode = ensure_choice(arguments["mode"], "mode", WRITE_MODES)
        return await asyncio.to_thread(self.service.write_file_content, path, content, encoding, mode)


class ShellExecuteHandler(SimpleToolHandler):
    tool_name = "shell_execute"

    def __init__(self, sandbox: ShellSandbox):
        self.sandbox = sandbox

    async def run(self, arguments: dict[str, Any]) -> Any:
        command = ensure_string(arguments.get("command"), "command")
        options = parse_shell_options(arguments)
        return await run_checked(self.sandbox, command, options)


def _encoding(arguments: dict[str, Any]) -> str:
    raw = arguments.get("encoding")
    if raw is None:
        return "utf8"
    return normalize_encoding(ensure_string(raw, "encoding"))


def simple_tools(service: FilesystemService, sandbox: ShellSandbox) -> list[RegisteredTool]:
    return [
        RegisteredTool(FILE_READ_DEFINITION, FileReadHandler(service)),
        RegisteredTool(FILE_WRITE_DEFINITION, FileWriteHandler(service)),
        RegisteredTool(SHELL_EXECUTE_DEFINITION, ShellExecuteHandler(sandbox)),
    ]
