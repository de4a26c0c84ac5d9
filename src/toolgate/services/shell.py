"""
Toolgate Shell Execution Sandbox

The only component permitted to spawn a process. Provides:
- Allow/deny command policy, with a separate narrow allow-list for
  pre-registered AI provider binaries
- Timeout enforcement via asyncio.wait_for + process kill
- Per-stream output caps with an explicit truncation marker
- Asynchronous, batched and synchronous execution modes
- Whole-word command adaptation between shell families

Note: This is NOT an isolation boundary. Commands run as the gateway's
user with its filesystem and network access; the policy is a pre-flight
filter on the command text.

Failures (policy rejection, spawn error, non-zero exit, timeout) come
back as a ShellResult with success=False. Only invalid options raise.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import signal
import subprocess
import sys
from pathlib import PurePath

from toolgate.logging import get_logger
from toolgate.models import PolicyDecision, ShellCommandOptions, ShellDetectionResult, ShellResult

logger = get_logger("toolgate.shell")

DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024

_POSIX = os.name == "posix"

PREVIOUS_OUTPUT_PLACEHOLDER = "$PREV"

_SEGMENT_SPLIT_RE = re.compile(r"\|\||&&|[|;&\n]")

DANGEROUS_COMMAND_PATTERNS = [
    re.compile(r"\|\|"),
    re.compile(r"&&"),
    re.compile(r">"),
    re.compile(r"<"),
    re.compile(r";\s*(rm|mv|cp|chmod|chown)\b"),
    re.compile(r"`.*`"),
    re.compile(r"\$\(.*\)"),
    re.compile(r"\beval\b"),
    re.compile(r"\bsource\b"),
    re.compile(r"(^|\s)\.\s+/"),
    # find can delete or run arbitrary commands on its own
    re.compile(r"\bfind\b.*\s-(delete|exec|execdir|ok|okdir)\b"),
]

TO_WINDOWS = {
    "ls": "dir",
    "cat": "type",
    "rm": "del",
    "mv": "move",
    "cp": "copy",
    "pwd": "cd",
    "clear": "cls",
    "ps": "Get-Process",
    "kill": "Stop-Process",
}

TO_UNIX = {
    "dir": "ls",
    "type": "cat",
    "del": "rm",
    "move": "mv",
    "copy": "cp",
    "cls": "clear",
}

UNIX_SHELLS = ("bash", "zsh", "fish", "sh", "dash")
WINDOWS_SHELLS = ("powershell", "pwsh", "cmd")


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform).startswith("win")


def adapt_command(command: str, platform: str | None = None) -> str:
    """Rewrite whole-word command synonyms for the target shell family.

    Best-effort textual substitution, not a parser.
    """
    table = TO_WINDOWS if is_windows(platform) else TO_UNIX
    adapted = command
    for source, target in table.items():
        adapted = re.sub(rf"\b{re.escape(source)}\b", target, adapted)
    return adapted


def _base_command(segment: str) -> str:
    parts = segment.strip().split()
    if not parts:
        return ""
    primary = parts[0].strip("\"'").lower()
    name = PurePath(primary.replace("\\", "/")).name
    stem, dot, _ext = name.rpartition(".")
    return stem if dot and stem else name


class CommandPolicy:
    """Allow/deny lists evaluated against every segment of a command."""

    def __init__(
        self,
        allowed: list[str] | None = None,
        blocked: list[str] | None = None,
        provider_allowed: list[str] | None = None,
    ):
        self.allowed = [c.lower() for c in (allowed or [])]
        self.blocked = [c.lower() for c in (blocked or [])]
        self.provider_allowed = [c.lower() for c in (provider_allowed or [])]

    def evaluate(self, command: str, is_provider_command: bool = False) -> PolicyDecision:
        if not command.strip():
            return PolicyDecision(allowed=False, reason="Command is empty", command=command)

        segments = [s for s in _SEGMENT_SPLIT_RE.split(command) if s.strip()]
        bases = [_base_command(s) for s in segments]

        for base in bases:
            if self._is_blocked(base):
                return PolicyDecision(
                    allowed=False,
                    reason=f"Command '{base}' is blocked for security reasons",
                    command=command,
                )

        if is_provider_command:
            primary = bases[0]
            if primary not in self.provider_allowed:
                return PolicyDecision(
                    allowed=False,
                    reason=f"Command '{primary}' is not a registered provider binary",
                    command=command,
                )
        elif self.allowed:
            for base in bases:
                if not self._is_allowed(base):
                    return PolicyDecision(
                        allowed=False,
                        reason=f"Command '{base}' is not in the allowed list",
                        command=command,
                    )

        if any(p.search(command) for p in DANGEROUS_COMMAND_PATTERNS):
            return PolicyDecision(allowed=False, reason="Command contains dangerous patterns", command=command)

        return PolicyDecision(allowed=True, reason="Command permitted by policy", command=command)

    def _is_blocked(self, base: str) -> bool:
        return any(base == b or base.startswith(b + "-") for b in self.blocked)

    def _is_allowed(self, base: str) -> bool:
        # python3, pip3, python-config
        return any(
            base == a or base.startswith(a + "3") or base.startswith(a + "-")
            for a in self.allowed
        )


class _BoundedBuffer:
    """Collects a stream up to ``limit`` bytes and counts what was dropped."""

    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()
        self.dropped = 0

    def feed(self, chunk: bytes) -> None:
        room = self.limit - len(self.data)
        if room > 0:
            self.data.extend(chunk[:room])
        self.dropped += max(0, len(chunk) - max(room, 0))

    def text(self) -> str:
        out = self.data.decode("utf-8", errors="replace")
        if self.dropped:
            out += f"\n[TRUNCATED at {self.limit} bytes]"
        return out


def _truncate(data: bytes | None, limit: int) -> tuple[str, bool]:
    buf = _BoundedBuffer(limit)
    buf.feed(data or b"")
    return buf.text(), buf.dropped > 0


class ShellSandbox:
    """Policy-checked process execution with timeout and output bounding."""

    def __init__(
        self,
        policy: CommandPolicy | None = None,
        workspace_root: str | None = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        default_max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        platform: str | None = None,
        max_timeout_ms: int | None = None,
    ):
        self.policy = policy or CommandPolicy()
        self._workspace_root = workspace_root
        self._default_timeout_ms = default_timeout_ms
        self._default_max_output_bytes = default_max_output_bytes
        self._platform = platform or sys.platform
        self._max_timeout_ms = max_timeout_ms
        self._active: dict[int, asyncio.subprocess.Process] = {}

    # ─── Policy ────────────────────────────────────────────

    def prepare(self, command: str, options: ShellCommandOptions) -> tuple[str, PolicyDecision]:
        """Apply adaptation (if requested) and evaluate the policy."""
        if options.adaptive:
            command = adapt_command(command, self._platform)
        if options.shell and not _is_known_shell(options.shell):
            decision = PolicyDecision(
                allowed=False,
                reason=f"Shell '{options.shell}' is not a recognized shell",
                command=command,
            )
        else:
            decision = self.policy.evaluate(command, is_provider_command=options.is_provider_command)
        if not decision.allowed:
            logger.warning("Command rejected by policy: %s", decision.reason)
        return command, decision

    # ─── Execution ─────────────────────────────────────────

    async def execute(self, command: str, options: ShellCommandOptions | None = None) -> ShellResult:
        opts = options or ShellCommandOptions()
        command, decision = self.prepare(command, opts)
        if not decision.allowed:
            return ShellResult.failed(decision.reason)
        return await self.run_prepared(command, opts)

    async def run_prepared(self, command: str, options: ShellCommandOptions) -> ShellResult:
        """Spawn a command that already went through ``prepare``.

        If the caller is cancelled (dispatch deadline, shutdown) the process
        is killed before the cancellation propagates.
        """
        opts = options
        argv = self._build_argv(command, opts.shell)
        timeout_ms = self._timeout_ms(opts)
        limit = opts.max_output_bytes or self._default_max_output_bytes
        stdout_buf = _BoundedBuffer(limit)
        stderr_buf = _BoundedBuffer(limit)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if opts.input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd(opts),
                env=dict(os.environ),
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error("Failed to spawn command: %s", e)
            return ShellResult.failed(str(e))

        self._active[proc.pid] = proc
        try:
            try:
                returncode = await asyncio.wait_for(
                    self._communicate(proc, opts.input, stdout_buf, stderr_buf),
                    timeout=timeout_ms / 1000,
                )
            except asyncio.CancelledError:
                _kill(proc)
                await asyncio.shield(proc.wait())
                logger.info("Command cancelled; process %d killed", proc.pid)
                raise
            except TimeoutError:
                _kill(proc)
                await proc.wait()
                message = f"Command timed out after {timeout_ms}ms"
                return ShellResult(
                    success=False,
                    stdout=stdout_buf.text(),
                    stderr=(stderr_buf.text() + "\nCommand timed out").lstrip("\n"),
                    exit_code=None,
                    error=message,
                    timed_out=True,
                    truncated=bool(stdout_buf.dropped or stderr_buf.dropped),
                )
        finally:
            self._active.pop(proc.pid, None)

        return ShellResult(
            success=returncode == 0,
            stdout=stdout_buf.text(),
            stderr=stderr_buf.text(),
            exit_code=returncode,
            error=None if returncode == 0 else f"Command exited with code {returncode}",
            truncated=bool(stdout_buf.dropped or stderr_buf.dropped),
        )

    async def execute_many(
        self,
        commands: list[str],
        options: ShellCommandOptions | None = None,
    ) -> list[ShellResult]:
        """Run commands in order; stop after the first failure unless continue_on_error.

        ``$PREV`` in a step is replaced with the previous step's trimmed stdout.
        """
        opts = options or ShellCommandOptions()
        results: list[ShellResult] = []
        previous_output = ""

        for command in commands:
            if previous_output and PREVIOUS_OUTPUT_PLACEHOLDER in command:
                command = command.replace(PREVIOUS_OUTPUT_PLACEHOLDER, previous_output.strip())
            result = await self.execute(command, opts)
            results.append(result)
            previous_output = result.stdout
            if not result.success and not opts.continue_on_error:
                break

        return results

    def execute_sync(self, command: str, options: ShellCommandOptions | None = None) -> ShellResult:
        """Blocking variant for short diagnostic commands."""
        opts = options or ShellCommandOptions()
        command, decision = self.prepare(command, opts)
        if not decision.allowed:
            return ShellResult.failed(decision.reason)
        return self.run_prepared_sync(command, opts)

    def run_prepared_sync(self, command: str, options: ShellCommandOptions) -> ShellResult:
        opts = options
        timeout_ms = self._timeout_ms(opts)
        limit = opts.max_output_bytes or self._default_max_output_bytes
        try:
            completed = subprocess.run(
                self._build_argv(command, opts.shell),
                input=opts.input.encode("utf-8") if opts.input is not None else None,
                stdin=None if opts.input is not None else subprocess.DEVNULL,
                capture_output=True,
                cwd=self._cwd(opts),
                env=dict(os.environ),
                timeout=timeout_ms / 1000,
            )
        except subprocess.TimeoutExpired as e:
            stdout, truncated = _truncate(e.stdout, limit)
            return ShellResult(
                success=False,
                stdout=stdout,
                stderr="Command timed out",
                exit_code=None,
                error=f"Command timed out after {timeout_ms}ms",
                timed_out=True,
                truncated=truncated,
            )
        except OSError as e:
            logger.error("Synchronous command failed to start: %s", e)
            return ShellResult.failed(str(e))

        stdout, out_truncated = _truncate(completed.stdout, limit)
        stderr, err_truncated = _truncate(completed.stderr, limit)
        return ShellResult(
            success=completed.returncode == 0,
            stdout=stdout,
            stderr=stderr,
            exit_code=completed.returncode,
            error=None if completed.returncode == 0 else f"Command exited with code {completed.returncode}",
            truncated=out_truncated or err_truncated,
        )

    # ─── Introspection ─────────────────────────────────────

    def detect_shells(self) -> ShellDetectionResult:
        if is_windows(self._platform):
            available = [s for s in WINDOWS_SHELLS if shutil.which(s)]
            default = "powershell" if "powershell" in available else "cmd"
        else:
            available = [s for s in UNIX_SHELLS if shutil.which(s)]
            default = "bash" if "bash" in available else "sh"
        return ShellDetectionResult(
            available_shells=available,
            default_shell=default,
            platform=self._platform,
        )

    def get_allowed_commands(self) -> list[str]:
        return list(self.policy.allowed)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def terminate_all(self) -> int:
        """Kill every process this sandbox is still waiting on."""
        killed = 0
        for pid, proc in list(self._active.items()):
            if _kill(proc):
                killed += 1
            self._active.pop(pid, None)
        if killed:
            logger.info("Terminated %d running command(s)", killed)
        return killed

    # ─── Internals ─────────────────────────────────────────

    def _default_shell(self) -> str:
        if is_windows(self._platform):
            for candidate in ("powershell.exe", "pwsh.exe"):
                if shutil.which(candidate):
                    return candidate
            return "cmd.exe"
        return "bash" if shutil.which("bash") else "sh"

    def _build_argv(self, command: str, shell: str | None) -> list[str]:
        shell = shell or self._default_shell()
        if is_windows(self._platform):
            lower = shell.lower()
            if "powershell" in lower or "pwsh" in lower:
                return [shell, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", command]
            return [shell, "/c", command]
        return [shell, "-c", command]

    def _timeout_ms(self, opts: ShellCommandOptions) -> int:
        timeout_ms = opts.timeout_ms or self._default_timeout_ms
        if self._max_timeout_ms is not None:
            timeout_ms = min(timeout_ms, self._max_timeout_ms)
        return timeout_ms

    def _cwd(self, opts: ShellCommandOptions) -> str | None:
        if opts.cwd and self._workspace_root and not os.path.isabs(opts.cwd):
            return os.path.join(self._workspace_root, opts.cwd)
        return opts.cwd or self._workspace_root

    @staticmethod
    async def _communicate(
        proc: asyncio.subprocess.Process,
        stdin_data: str | None,
        stdout_buf: _BoundedBuffer,
        stderr_buf: _BoundedBuffer,
    ) -> int:
        async def drain(stream: asyncio.StreamReader | None, buf: _BoundedBuffer) -> None:
            if stream is None:
                return
            while chunk := await stream.read(65536):
                buf.feed(chunk)

        async def feed_stdin() -> None:
            if proc.stdin is None:
                return
            if stdin_data is not None:
                try:
                    proc.stdin.write(stdin_data.encode("utf-8"))
                    await proc.stdin.drain()
                except (BrokenPipeError, ConnectionResetError):
                    pass
            proc.stdin.close()

        await asyncio.gather(
            feed_stdin(),
            drain(proc.stdout, stdout_buf),
            drain(proc.stderr, stderr_buf),
        )
        return await proc.wait()


def _is_known_shell(shell: str) -> bool:
    return _base_command(shell) in UNIX_SHELLS + WINDOWS_SHELLS


def _kill(proc: asyncio.subprocess.Process) -> bool:
    """Kill a process and, on POSIX, the session it leads."""
    if proc.returncode is not None:
        return False
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        return False
    return True
