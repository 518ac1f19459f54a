"""Local execution gateway: runs commands as subprocesses on this machine."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import signal
import time
from enum import Enum
from pathlib import Path

from turn_loop.abort import AbortSignal
from turn_loop.arguments import ExecArgs
from turn_loop.gateway.types import (
    ApprovalCallback,
    ApprovalDecision,
    ApprovalPolicy,
    ExecutionResult,
)
from turn_loop.truncation import DEFAULT_MAX_CHARS, DEFAULT_MAX_LINES, truncate_command_output

logger = logging.getLogger(__name__)


# --- Environment variable filtering ---

SENSITIVE_PATTERNS = [
    "*_API_KEY", "*_SECRET", "*_TOKEN", "*_PASSWORD", "*_CREDENTIAL",
]

ALWAYS_INCLUDE = [
    "PATH", "HOME", "USER", "SHELL", "LANG", "TERM", "TMPDIR",
    "PYTHONPATH", "VIRTUAL_ENV",
]

# Commands that only read state; AUTO_EDIT runs these without asking.
SAFE_COMMANDS = frozenset({
    "ls", "cat", "pwd", "echo", "head", "tail", "wc", "which", "whoami",
    "grep", "rg", "find", "stat", "file", "date", "true",
})

SAFE_GIT_SUBCOMMANDS = frozenset({"status", "log", "diff", "show", "branch"})

KILL_GRACE_SECONDS = 2.0


class EnvVarPolicy(Enum):
    INHERIT_CORE = "inherit_core"    # Default: filter sensitive, keep core
    INHERIT_ALL = "inherit_all"
    INHERIT_NONE = "inherit_none"    # Only ALWAYS_INCLUDE


def _is_sensitive(name: str) -> bool:
    upper = name.upper()
    return any(fnmatch.fnmatch(upper, pat) for pat in SENSITIVE_PATTERNS)


def _filter_env(policy: EnvVarPolicy) -> dict[str, str]:
    base = os.environ.copy()
    if policy == EnvVarPolicy.INHERIT_ALL:
        return base
    if policy == EnvVarPolicy.INHERIT_NONE:
        return {k: v for k, v in base.items() if k in ALWAYS_INCLUDE}
    return {k: v for k, v in base.items() if not _is_sensitive(k)}


def is_safe_command(command: tuple[str, ...]) -> bool:
    """True for commands known not to modify anything."""
    if not command:
        return False
    program = os.path.basename(command[0])
    if program == "git":
        return len(command) > 1 and command[1] in SAFE_GIT_SUBCOMMANDS
    return program in SAFE_COMMANDS


def is_within_roots(path: str, roots: tuple[str, ...]) -> bool:
    resolved = Path(path).resolve()
    for root in roots:
        root_path = Path(root).resolve()
        if resolved == root_path or root_path in resolved.parents:
            return True
    return False


class LocalExecutionGateway:
    """Runs commands on the local machine.

    Commands are exec'd directly (no shell) in a new process group so a
    timeout or abort can signal the whole tree.
    """

    def __init__(
        self,
        working_dir: str | None = None,
        default_timeout_ms: int = 10_000,
        env_policy: EnvVarPolicy = EnvVarPolicy.INHERIT_CORE,
        max_output_chars: int = DEFAULT_MAX_CHARS,
        max_output_lines: int | None = DEFAULT_MAX_LINES,
    ) -> None:
        self._working_dir = working_dir or os.getcwd()
        self._default_timeout_ms = default_timeout_ms
        self._env_policy = env_policy
        self._max_output_chars = max_output_chars
        self._max_output_lines = max_output_lines

    @property
    def working_directory(self) -> str:
        return self._working_dir

    async def execute(
        self,
        args: ExecArgs,
        policy: ApprovalPolicy,
        writable_roots: tuple[str, ...],
        approve: ApprovalCallback,
        cancel: AbortSignal,
    ) -> ExecutionResult:
        workdir = self._resolve_workdir(args.workdir)

        if self._needs_approval(args.command, workdir, policy, writable_roots):
            decision = approve(args.command, workdir)
            if decision != ApprovalDecision.APPROVE:
                logger.info("Command denied: %s", args.command)
                return ExecutionResult(
                    output_text="aborted by user",
                    metadata={"exit_code": 1, "duration_seconds": 0.0, "denied": True},
                )

        if cancel.aborted:
            return ExecutionResult(
                output_text="aborted", metadata={"exit_code": -1}, cancelled=True,
            )

        timeout_ms = args.timeout_ms or self._default_timeout_ms
        return await self._run(args.command, workdir, timeout_ms, cancel)

    # --- Private helpers ---

    def _resolve_workdir(self, workdir: str | None) -> str:
        if not workdir:
            return self._working_dir
        p = Path(workdir)
        if p.is_absolute():
            return str(p)
        return str(Path(self._working_dir) / p)

    def _needs_approval(
        self,
        command: tuple[str, ...],
        workdir: str,
        policy: ApprovalPolicy,
        writable_roots: tuple[str, ...],
    ) -> bool:
        if policy == ApprovalPolicy.SUGGEST:
            return True
        if policy == ApprovalPolicy.AUTO_EDIT:
            return not is_safe_command(command)
        roots = writable_roots or (self._working_dir,)
        return not is_within_roots(workdir, roots)

    async def _run(
        self,
        command: tuple[str, ...],
        workdir: str,
        timeout_ms: int,
        cancel: AbortSignal,
    ) -> ExecutionResult:
        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                env=_filter_env(self._env_policy),
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            return ExecutionResult(
                output_text=f"failed to start {command[0]}: {e}",
                metadata={"exit_code": 127, "duration_seconds": 0.0},
            )

        communicate = asyncio.ensure_future(proc.communicate())
        aborted = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {communicate, aborted},
                timeout=timeout_ms / 1000.0,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            # The caller gave up on us; don't leave the process running.
            await self._terminate(proc)
            communicate.cancel()
            raise
        finally:
            aborted.cancel()

        timed_out = False
        cancelled = False
        if communicate not in done:
            cancelled = cancel.aborted
            timed_out = not cancelled
            await self._terminate(proc)
            stdout_bytes, stderr_bytes = await communicate
        else:
            stdout_bytes, stderr_bytes = communicate.result()

        duration = round(time.monotonic() - start, 3)
        stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
        exit_code = proc.returncode if proc.returncode is not None else -1

        if stdout and stderr and not stdout.endswith("\n"):
            stdout += "\n"
        text = stdout + stderr
        if timed_out:
            text += f"\n[command timed out after {timeout_ms}ms]"
        if cancelled:
            text = "aborted"

        truncated = truncate_command_output(text, self._max_output_chars, self._max_output_lines)
        metadata = {
            "exit_code": exit_code,
            "duration_seconds": duration,
            "truncated": truncated.truncated,
        }
        if timed_out:
            metadata["timed_out"] = True
        logger.debug("Command %s exited %s in %.3fs", command, exit_code, duration)
        return ExecutionResult(output_text=truncated.text, metadata=metadata, cancelled=cancelled)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, then SIGKILL after a grace period."""
        try:
            os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            pass
        try:
            await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            try:
                os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                pass
            await proc.wait()
