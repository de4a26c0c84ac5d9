"""Toolgate tools: action-routed and single-purpose tool handlers."""

from toolgate.tools.base import ActionResult, ActionToolHandler, SimpleToolHandler
from toolgate.tools.fs_tool import FsToolHandler, fs_tool
from toolgate.tools.registry import RegisteredTool, ToolDefinition, ToolRegistry
from toolgate.tools.shell_tool import ShellToolHandler, shell_tool
from toolgate.tools.simple import simple_tools

__all__ = [
    "ActionResult",
    "ActionToolHandler",
    "FsToolHandler",
    "RegisteredTool",
    "ShellToolHandler",
    "SimpleToolHandler",
    "ToolDefinition",
    "ToolRegistry",
    "fs_tool",
    "shell_tool",
    "simple_tools",
]
