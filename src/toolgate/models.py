"""
Toolgate Data Models

Pydantic models shared by the gateway, the tool handlers and the shell
sandbox. Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models that travel over the wire with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ─── Requests ────────────────────────────────────────────────


class ToolRequest(BaseModel):
    """A tool call as received from a transport. Untrusted until sanitized."""

    name: str = Field(min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ConnectionState(str, Enum):
    """Per-connection lifecycle for the request/response transports."""

    IDLE = "IDLE"
    RECEIVING = "RECEIVING"
    DISPATCHING = "DISPATCHING"
    RESPONDING = "RESPONDING"


# ─── Shell ───────────────────────────────────────────────────


class ShellCommandOptions(WireModel):
    """Options applied to a single command or to every step of a batch."""

    shell: str | None = None
    cwd: str | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    max_output_bytes: int | None = Field(default=None, gt=0)
    input: str | None = None
    continue_on_error: bool = False
    is_provider_command: bool = False
    adaptive: bool = False


class ShellResult(WireModel):
    """Outcome of one command. Failures are represented here, never raised."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    error: str | None = None
    timed_out: bool = False
    truncated: bool = False

    @classmethod
    def failed(cls, message: str, stdout: str = "", **kwargs: Any) -> ShellResult:
        return cls(success=False, stdout=stdout, stderr=message, exit_code=None, error=message, **kwargs)


class ShellDetectionResult(WireModel):
    available_shells: list[str] = Field(default_factory=list)
    default_shell: str
    platform: str


class PolicyDecision(BaseModel):
    """Verdict of the command policy for one command string."""

    allowed: bool
    reason: str
    command: str = ""


# ─── Filesystem ──────────────────────────────────────────────


class SplitSummary(WireModel):
    original: str
    parts: list[str] = Field(default_factory=list)
    max_lines: int
    rewritten: bool = False


class DirectoryCreateResult(WireModel):
    created: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class ReadFileResult(WireModel):
    path: str
    content: str
    bytes: int
    encoding: str
    modified_at: float


class WriteFileResult(WireModel):
    path: str
    bytes_written: int
    mode: str
    encoding: str
    created: bool
