"""
Toolgate Configuration

Gateway settings resolved from the process environment. Config files
are deliberately not read here; whatever loads them hands the result to
``GatewaySettings(...)`` directly.

Environment variables:
    TOOLGATE_WORKSPACE           Working root for shell and filesystem defaults
    TOOLGATE_ALLOWED_COMMANDS    Comma-separated shell allow-list
    TOOLGATE_BLOCKED_COMMANDS    Comma-separated shell deny-list
    TOOLGATE_PROVIDER_COMMANDS   Comma-separated AI-provider binary allow-list
    TOOLGATE_DISPATCH_TIMEOUT    Per-call dispatch deadline in seconds
    TOOLGATE_LOG_LEVEL           DEBUG | INFO | WARNING | ERROR
    TOOLGATE_LOG_JSON            1/true to emit JSON log lines
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from toolgate.exceptions import ConfigurationError

WORKSPACE_ENV = "TOOLGATE_WORKSPACE"
WORKSPACE_FOLDER_VARIABLE = "${workspaceFolder}"

DEFAULT_ALLOWED_COMMANDS = [
    "git", "npm", "npx", "node", "python", "pip", "pytest", "uv", "ruff",
    "make", "ls", "dir", "cat", "type", "echo", "pwd", "grep", "find",
    "head", "tail", "wc", "sort", "diff", "which", "true", "false",
]

DEFAULT_BLOCKED_COMMANDS = [
    "rm", "rmdir", "del", "erase", "format", "mkfs", "dd", "shutdown",
    "reboot", "halt", "poweroff", "sudo", "su", "doas", "chmod", "chown",
    "passwd", "crontab", "curl", "wget",
]

DEFAULT_PROVIDER_COMMANDS = ["claude", "codex", "gemini", "ollama", "qwen", "opencode", "aider"]


class GatewaySettings(BaseModel):
    """Configuration for the tool invocation gateway."""

    workspace_root: str = Field(default_factory=os.getcwd)
    allowed_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))
    blocked_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_COMMANDS))
    provider_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_PROVIDER_COMMANDS))
    default_timeout_ms: int = Field(default=300_000, ge=1, le=3_600_000)
    max_output_bytes: int = Field(default=1024 * 1024, ge=1024, le=64 * 1024 * 1024)
    dispatch_timeout_s: float = Field(default=300.0, gt=0, le=3600.0)
    sse_queue_size: int = Field(default=100, ge=1, le=10_000)
    sse_keepalive_s: float = Field(default=15.0, gt=0)
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("workspace_root")
    @classmethod
    def _resolve_workspace(cls, value: str) -> str:
        return resolve_workspace_root(value)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> GatewaySettings:
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        if env.get(WORKSPACE_ENV):
            values["workspace_root"] = env[WORKSPACE_ENV]
        for var, key in (
            ("TOOLGATE_ALLOWED_COMMANDS", "allowed_commands"),
            ("TOOLGATE_BLOCKED_COMMANDS", "blocked_commands"),
            ("TOOLGATE_PROVIDER_COMMANDS", "provider_commands"),
        ):
            if var in env:
                values[key] = _split_list(env[var])
        if env.get("TOOLGATE_DISPATCH_TIMEOUT"):
            values["dispatch_timeout_s"] = env["TOOLGATE_DISPATCH_TIMEOUT"]
        if env.get("TOOLGATE_LOG_LEVEL"):
            values["log_level"] = env["TOOLGATE_LOG_LEVEL"]
        if env.get("TOOLGATE_LOG_JSON"):
            values["json_logs"] = env["TOOLGATE_LOG_JSON"].strip().lower() in ("1", "true", "yes")

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid gateway settings: {e.error_count()} error(s)",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e


def resolve_workspace_root(raw: str) -> str:
    """Resolve a workspace root, expanding a literal ``${workspaceFolder}``.

    IDEs sometimes pass the variable through unexpanded; it maps to the
    current directory.
    """
    if WORKSPACE_FOLDER_VARIABLE in raw:
        raw = raw.replace(WORKSPACE_FOLDER_VARIABLE, os.getcwd())
    return str(Path(raw).expanduser().resolve())


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]
