"""
Toolgate Filesystem Tool

The ``fs`` tool: list, move, copy, remove, split and mkdir inside the
workspace. Filesystem calls run in a worker thread so a slow disk never
stalls the other transports.
"""

from __future__ import annotations

import asyncio
from typing import Any

from toolgate.gateway.validation import (
    ensure_string,
    ensure_string_array,
    optional_boolean,
    optional_number,
    optional_string,
)
from toolgate.services.filesystem import FilesystemService
from toolgate.tools.base import ActionResult, ActionToolHandler
from toolgate.tools.registry import RegisteredTool, ToolDefinition

FS_ACTIONS = ("list", "move", "copy", "remove", "split", "mkdir")

FS_TOOL_DEFINITION = ToolDefinition(
    name="fs",
    description="Filesystem operations inside the workspace: list, move, copy, remove, split, mkdir.",
    input_schema={
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": list(FS_ACTIONS)},
            "payload": {
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Glob pattern for list"},
                    "path": {"type": "string", "description": "Directory for list"},
                    "source": {"type": "string"},
                    "destination": {"type": "string"},
                    "target": {"type": "string"},
                    "force": {"type": "boolean"},
                    "filePath": {"type": "string"},
                    "maxLines": {"type": "number"},
                    "paths": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "required": ["action"],
    },
)


class FsToolHandler(ActionToolHandler):
    """Routes ``fs`` actions to the filesystem service."""

    tool_name = "fs"
    ACTIONS = FS_ACTIONS

    def __init__(self, service: FilesystemService):
        self.service = service

    async def _action_list(self, payload: dict[str, Any]) -> Any:
        pattern = optional_string(payload.get("pattern"), "payload.pattern")
        path = optional_string(payload.get("path"), "payload.path")
        return await asyncio.to_thread(self.service.list_files, pattern, path)

    async def _action_move(self, payload: dict[str, Any]) -> Any:
        source = ensure_string(payload.get("source"), "payload.source")
        destination = ensure_string(payload.get("destination"), "payload.destination")
        await asyncio.to_thread(self.service.move_path, source, destination)
        return {"source": source, "destination": destination}

    async def _action_copy(self, payload: dict[str, Any]) -> Any:
        source = ensure_string(payload.get("source"), "payload.source")
        destination = ensure_string(payload.get("destination"), "payload.destination")
        await asyncio.to_thread(self.service.copy_path, source, destination)
        return {"source": source, "destination": destination}

    async def _action_remove(self, payload: dict[str, Any]) -> Any:
        target = ensure_string(payload.get("target"), "payload.target")
        force = optional_boolean(payload.get("force"), "payload.force")
        await asyncio.to_thread(self.service.remove_path, target, force)
        return {"target": target, "removed": True}

    async def _action_split(self, payload: dict[str, Any]) -> Any:
        file_path = ensure_string(payload.get("filePath"), "payload.filePath")
        max_lines = optional_number(payload.get("maxLines"), "payload.maxLines")
        summary = await asyncio.to_thread(
            self.service.split_large_file,
            file_path,
            int(max_lines) if max_lines else None,
        )
        if summary is None:
            return ActionResult(
                {"summary": None},
                hint="File was not split: it is short enough, already split, or has no top-level boundaries.",
            )
        return {"summary": summary}

    async def _action_mkdir(self, payload: dict[str, Any]) -> Any:
        paths = ensure_string_array(payload.get("paths"), "payload.paths")
        return await asyncio.to_thread(self.service.create_directories, paths)


def fs_tool(service: FilesystemService) -> RegisteredTool:
    return RegisteredTool(FS_TOOL_DEFINITION, FsToolHandler(service), aliases=["toolgate.fs"])
