"""Tests for the local execution gateway."""

import asyncio
import os

import pytest

from turn_loop.abort import AbortController
from turn_loop.arguments import ExecArgs
from turn_loop.gateway.local import (
    EnvVarPolicy,
    LocalExecutionGateway,
    _filter_env,
    _is_sensitive,
    is_safe_command,
    is_within_roots,
)
from turn_loop.gateway.types import ApprovalDecision, ApprovalPolicy, auto_approve


def _deny(command, workdir):
    return ApprovalDecision.DENY


def _recording(decision=ApprovalDecision.APPROVE):
    asked = []

    def callback(command, workdir):
        asked.append((command, workdir))
        return decision

    return callback, asked


async def _run(gateway, command, policy=ApprovalPolicy.FULL_AUTO, approve=auto_approve, **kwargs):
    controller = kwargs.pop("controller", None) or AbortController()
    return await gateway.execute(
        ExecArgs(command=tuple(command), **kwargs), policy, (), approve, controller.signal,
    )


# --- Safe commands ---


class TestIsSafeCommand:
    @pytest.mark.parametrize("command", [("ls", "-la"), ("cat", "x"), ("/bin/pwd",), ("git", "status")])
    def test_safe(self, command):
        assert is_safe_command(command)

    @pytest.mark.parametrize("command", [("rm", "-rf", "/"), ("git", "push"), ("git",), ()])
    def test_unsafe(self, command):
        assert not is_safe_command(command)


class TestIsWithinRoots:
    def test_inside_and_outside(self, tmp_path):
        inner = tmp_path / "sub"
        inner.mkdir()
        assert is_within_roots(str(inner), (str(tmp_path),))
        assert is_within_roots(str(tmp_path), (str(tmp_path),))
        assert not is_within_roots("/", (str(tmp_path),))


# --- Environment filtering ---


class TestEnvFiltering:
    def test_sensitive_names(self):
        assert _is_sensitive("OPENAI_API_KEY")
        assert _is_sensitive("github_token")
        assert not _is_sensitive("PATH")

    def test_inherit_core_drops_secrets(self, monkeypatch):
        monkeypatch.setenv("MY_SERVICE_SECRET", "hunter2")
        monkeypatch.setenv("HARMLESS_FLAG", "1")
        env = _filter_env(EnvVarPolicy.INHERIT_CORE)
        assert "MY_SERVICE_SECRET" not in env
        assert env["HARMLESS_FLAG"] == "1"

    def test_inherit_none_keeps_core_only(self, monkeypatch):
        monkeypatch.setenv("HARMLESS_FLAG", "1")
        env = _filter_env(EnvVarPolicy.INHERIT_NONE)
        assert "HARMLESS_FLAG" not in env
        assert env.get("PATH") == os.environ.get("PATH")


# --- Approval ---


class TestApproval:
    @pytest.mark.asyncio
    async def test_suggest_always_asks(self, tmp_path):
        callback, asked = _recording()
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        await _run(gateway, ["echo", "hi"], ApprovalPolicy.SUGGEST, callback)
        assert asked == [(("echo", "hi"), str(tmp_path))]

    @pytest.mark.asyncio
    async def test_auto_edit_skips_safe_commands(self, tmp_path):
        callback, asked = _recording()
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        await _run(gateway, ["ls"], ApprovalPolicy.AUTO_EDIT, callback)
        assert asked == []
        await _run(gateway, ["touch", "f"], ApprovalPolicy.AUTO_EDIT, callback)
        assert len(asked) == 1

    @pytest.mark.asyncio
    async def test_full_auto_asks_outside_roots(self, tmp_path):
        callback, asked = _recording()
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        await _run(gateway, ["true"], ApprovalPolicy.FULL_AUTO, callback)
        assert asked == []
        await _run(gateway, ["true"], ApprovalPolicy.FULL_AUTO, callback, workdir="/")
        assert len(asked) == 1

    @pytest.mark.asyncio
    async def test_denied_command_not_run(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["touch", "created"], ApprovalPolicy.SUGGEST, _deny)
        assert result.output_text == "aborted by user"
        assert result.exit_code == 1
        assert result.metadata["denied"] is True
        assert not (tmp_path / "created").exists()


# --- Execution ---


class TestExecution:
    @pytest.mark.asyncio
    async def test_echo(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["echo", "hello"])
        assert result.output_text == "hello\n"
        assert result.exit_code == 0
        assert result.metadata["truncated"] is False
        assert "duration_seconds" in result.metadata
        assert result.cancelled is False

    @pytest.mark.asyncio
    async def test_runs_in_workdir(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["pwd"], workdir="sub")
        assert result.output_text.strip() == str(sub.resolve())

    @pytest.mark.asyncio
    async def test_stderr_starts_on_its_own_line(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["sh", "-c", "printf out; printf err >&2"])
        assert result.output_text == "out\nerr"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["ls", str(tmp_path / "missing")])
        assert result.exit_code != 0
        assert result.output_text

    @pytest.mark.asyncio
    async def test_missing_program(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["definitely-not-a-real-program-xyz"])
        assert result.exit_code == 127

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        result = await _run(gateway, ["sleep", "5"], timeout_ms=100)
        assert result.metadata["timed_out"] is True
        assert "timed out after 100ms" in result.output_text
        assert result.exit_code != 0

    @pytest.mark.asyncio
    async def test_output_truncated(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path), max_output_chars=10)
        result = await _run(gateway, ["echo", "x" * 100])
        assert result.metadata["truncated"] is True
        assert "characters truncated" in result.output_text

    @pytest.mark.asyncio
    async def test_abort_stops_process(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        controller = AbortController()

        async def abort_soon():
            await asyncio.sleep(0.1)
            controller.abort()

        abort_task = asyncio.ensure_future(abort_soon())
        result = await asyncio.wait_for(
            _run(gateway, ["sleep", "10"], controller=controller), timeout=5,
        )
        await abort_task
        assert result.cancelled is True
        assert result.output_text == "aborted"

    @pytest.mark.asyncio
    async def test_already_aborted_never_starts(self, tmp_path):
        gateway = LocalExecutionGateway(working_dir=str(tmp_path))
        controller = AbortController()
        controller.abort()
        result = await _run(gateway, ["touch", "created"], controller=controller)
        assert result.cancelled is True
        assert not (tmp_path / "created").exists()
