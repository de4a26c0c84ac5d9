"""Tests for the shell tool and the shell_execute tool."""

import logging
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolgate.config import DEFAULT_ALLOWED_COMMANDS, DEFAULT_BLOCKED_COMMANDS, DEFAULT_PROVIDER_COMMANDS
from toolgate.exceptions import BadRequestError
from toolgate.models import PolicyDecision, ShellCommandOptions, ShellResult
from toolgate.services.shell import CommandPolicy, ShellSandbox
from toolgate.tools.shell_tool import ShellToolHandler, parse_shell_options
from toolgate.tools.simple import ShellExecuteHandler

posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX shell required")


@pytest.fixture
def sandbox(tmp_path):
    policy = CommandPolicy(
        allowed=DEFAULT_ALLOWED_COMMANDS,
        blocked=DEFAULT_BLOCKED_COMMANDS,
        provider_allowed=DEFAULT_PROVIDER_COMMANDS,
    )
    return ShellSandbox(policy=policy, workspace_root=str(tmp_path))


@pytest.fixture
def handler(sandbox):
    return ShellToolHandler(sandbox)


@pytest.fixture
def mock_sandbox():
    sandbox = MagicMock(spec=ShellSandbox)
    sandbox.prepare.side_effect = lambda command, options: (
        command,
        PolicyDecision(allowed=True, reason="ok", command=command),
    )
    return sandbox


class TestParseShellOptions:
    def test_original_names(self):
        options = parse_shell_options({"timeout": 500, "maxOutputSize": 2048, "continueOnError": True})
        assert options.timeout_ms == 500
        assert options.max_output_bytes == 2048
        assert options.continue_on_error is True

    def test_camel_case_names(self):
        options = parse_shell_options({"timeoutMs": "250", "maxOutputBytes": 4096, "isProviderCommand": "true"})
        assert options.timeout_ms == 250
        assert options.max_output_bytes == 4096
        assert options.is_provider_command is True

    def test_non_positive_timeout(self):
        with pytest.raises(BadRequestError, match="Invalid shell options"):
            parse_shell_options({"timeout": 0})

    def test_field_prefix_in_errors(self):
        with pytest.raises(BadRequestError) as exc_info:
            parse_shell_options({"timeout": "soon"}, "payload.")
        assert exc_info.value.field == "payload.timeout"

    def test_non_string_input_ignored(self):
        assert parse_shell_options({"input": 5}).input is None


class TestPolicyPath:
    async def test_rm_rf_is_policy_rejected(self, handler):
        with patch("toolgate.services.shell.asyncio.create_subprocess_exec") as spawn:
            envelope = await handler({"action": "execute", "payload": {"command": "rm -rf /"}})
        spawn.assert_not_called()
        assert envelope.success is False
        assert envelope.error.code == "PolicyRejected"
        assert envelope.error.details["command"] == "rm -rf /"

    async def test_execute_sync_policy_rejected(self, handler):
        with patch("toolgate.services.shell.subprocess.run") as run:
            envelope = await handler({"action": "executeSync", "payload": {"command": "sudo ls"}})
        run.assert_not_called()
        assert envelope.error.code == "PolicyRejected"

    async def test_unknown_action(self, mock_sandbox):
        envelope = await ShellToolHandler(mock_sandbox)({"action": "spawn", "payload": {"command": "ls"}})
        assert envelope.error.code == "NotSupported"
        assert mock_sandbox.mock_calls == []

    async def test_missing_command(self, handler):
        envelope = await handler({"action": "execute", "payload": {}})
        assert envelope.error.code == "BadRequest"
        assert envelope.error.details["field"] == "payload.command"


class TestExecution:
    async def test_timeout_envelope_carries_partial_result(self, mock_sandbox):
        mock_sandbox.run_prepared = AsyncMock(
            return_value=ShellResult(
                success=False,
                stdout="partial",
                stderr="Command timed out",
                error="Command timed out after 100ms",
                timed_out=True,
            )
        )
        handler = ShellToolHandler(mock_sandbox)
        envelope = await handler({"action": "execute", "payload": {"command": "git log", "timeout": 100}})
        assert envelope.error.code == "Timeout"
        assert envelope.error.details["timeout_ms"] == 100
        assert envelope.error.details["result"]["stdout"] == "partial"

    async def test_non_zero_exit_is_successful_envelope(self, mock_sandbox):
        mock_sandbox.run_prepared = AsyncMock(
            return_value=ShellResult(success=False, exit_code=2, error="Command exited with code 2")
        )
        envelope = await ShellToolHandler(mock_sandbox)({"action": "execute", "payload": {"command": "ls nope"}})
        assert envelope.success is True
        assert envelope.data["success"] is False
        assert envelope.data["exitCode"] == 2

    async def test_options_forwarded(self, mock_sandbox):
        mock_sandbox.run_prepared = AsyncMock(return_value=ShellResult(success=True))
        handler = ShellToolHandler(mock_sandbox)
        await handler({"action": "execute", "payload": {"command": "ls", "cwd": "src", "adaptive": True}})
        options = mock_sandbox.run_prepared.call_args.args[1]
        assert isinstance(options, ShellCommandOptions)
        assert options.cwd == "src"
        assert options.adaptive is True

    async def test_prepared_command_runs_without_second_policy_pass(self, mock_sandbox):
        mock_sandbox.prepare.side_effect = lambda command, options: (
            "dir",
            PolicyDecision(allowed=True, reason="ok", command="dir"),
        )
        mock_sandbox.run_prepared = AsyncMock(return_value=ShellResult(success=True))
        await ShellToolHandler(mock_sandbox)({"action": "execute", "payload": {"command": "ls", "adaptive": True}})
        mock_sandbox.prepare.assert_called_once()
        assert mock_sandbox.run_prepared.call_args.args[0] == "dir"
        mock_sandbox.execute.assert_not_called()

    async def test_rejection_logged_once(self, handler, caplog):
        with caplog.at_level(logging.WARNING, logger="toolgate.shell"):
            envelope = await handler({"action": "execute", "payload": {"command": "sudo ls"}})
        assert envelope.error.code == "PolicyRejected"
        assert caplog.text.count("Command rejected by policy") == 1

    @posix_only
    async def test_execute_echo(self, handler):
        envelope = await handler({"action": "execute", "payload": {"command": "echo hi"}})
        assert envelope.success is True
        assert envelope.data["stdout"] == "hi\n"

    @posix_only
    async def test_execute_sync_echo(self, handler):
        envelope = await handler({"action": "executeSync", "payload": {"command": "echo sync"}})
        assert envelope.data["stdout"] == "sync\n"

    @posix_only
    async def test_execute_many_short_circuits(self, handler):
        envelope = await handler({"action": "executeMany", "payload": {"commands": ["echo a", "false", "echo c"]}})
        assert envelope.success is True
        assert len(envelope.data) == 2
        assert envelope.data[1]["success"] is False
        assert "continueOnError" in envelope.hint

    @posix_only
    async def test_execute_many_continue_on_error(self, handler):
        envelope = await handler({
            "action": "executeMany",
            "payload": {"commands": ["false", "echo c"], "continueOnError": True},
        })
        assert len(envelope.data) == 2
        assert envelope.hint is None

    async def test_execute_many_requires_commands(self, handler):
        envelope = await handler({"action": "executeMany", "payload": {"commands": []}})
        assert envelope.error.code == "BadRequest"


class TestIntrospectionActions:
    async def test_list_allowed(self, handler):
        envelope = await handler({"action": "listAllowed"})
        assert envelope.data == {"commands": DEFAULT_ALLOWED_COMMANDS}

    async def test_detect_shells(self, handler):
        envelope = await handler({"action": "detectShells"})
        assert envelope.success is True
        assert "defaultShell" in envelope.data
        assert "availableShells" in envelope.data


class TestShellExecuteTool:
    async def test_policy_rejected(self, sandbox):
        envelope = await ShellExecuteHandler(sandbox)({"command": "rm -rf /"})
        assert envelope.error.code == "PolicyRejected"

    async def test_flat_arguments(self, mock_sandbox):
        mock_sandbox.run_prepared = AsyncMock(return_value=ShellResult(success=True, stdout="ok"))
        envelope = await ShellExecuteHandler(mock_sandbox)({"command": "git status", "timeout": 1000})
        assert envelope.data["stdout"] == "ok"
        assert mock_sandbox.run_prepared.call_args.args[1].timeout_ms == 1000

    async def test_missing_command(self, mock_sandbox):
        envelope = await ShellExecuteHandler(mock_sandbox)({})
        assert envelope.error.code == "BadRequest"
        assert envelope.error.details["field"] == "command"
