"""
Toolgate Tool Registry

Central registry for every tool exposed through the gateway. Each tool
is registered with its definition (name, description, JSON input schema)
and the handler that receives sanitized arguments. Aliases resolve to the
canonical tool.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from toolgate.gateway.envelope import ResponseEnvelope

ToolHandler = Callable[[dict[str, Any]], Awaitable[ResponseEnvelope]]


@dataclass
class ToolDefinition:
    """A tool as advertised to agents."""
    name: str
    description: str
    input_schema: dict = field(default_factory=dict)


class RegisteredTool:
    """A tool definition bound to its handler and optional aliases."""

    def __init__(
        self,
        definition: ToolDefinition,
        handler: ToolHandler,
        aliases: list[str] | None = None,
    ):
        self.definition = definition
        self.handler = handler
        self.aliases = list(aliases or [])

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Name and alias lookup for registered tools.

    Tools are registered once at startup. Lookups are read-only afterwards.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._aliases: dict[str, str] = {}

    def register(self, tool: RegisteredTool) -> None:
        """Register a tool and its aliases.

        Raises ValueError if the name or an alias is already taken.
        """
        for name in [tool.name, *tool.aliases]:
            if name in self._tools or name in self._aliases:
                raise ValueError(f"Tool '{name}' is already registered")
        self._tools[tool.name] = tool
        for alias in tool.aliases:
            self._aliases[alias] = tool.name

    def get(self, name: str) -> RegisteredTool | None:
        """Look up a tool by canonical name or alias."""
        return self._tools.get(self._aliases.get(name, name))

    def get_all(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    def get_schemas(self) -> list[dict]:
        return [
            {
                "name": t.definition.name,
                "description": t.definition.description,
                "inputSchema": t.definition.input_schema,
                **({"aliases": t.aliases} if t.aliases else {}),
            }
            for t in self._tools.values()
        ]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
