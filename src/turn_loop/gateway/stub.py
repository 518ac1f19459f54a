"""Stub execution gateway for testing."""

from __future__ import annotations

import asyncio

from turn_loop.abort import AbortSignal
from turn_loop.arguments import ExecArgs
from turn_loop.gateway.types import (
    ApprovalCallback,
    ApprovalDecision,
    ApprovalPolicy,
    ExecutionResult,
)


class StubExecutionGateway:
    """Test stub that returns predefined results in sequence.

    When results are exhausted, cycles the last one. Commands listed in
    *blocking* never finish on their own; they wait for the abort signal and
    then return a cancelled result. *delays* maps a command's first word to a
    sleep in seconds, for exercising completion order.
    """

    def __init__(
        self,
        results: list[ExecutionResult] | None = None,
        blocking: set[str] | None = None,
        delays: dict[str, float] | None = None,
        ask_approval: bool = False,
    ) -> None:
        self._results = list(results) if results else [ExecutionResult(metadata={"exit_code": 0})]
        self._index = 0
        self._blocking = set(blocking or ())
        self._delays = dict(delays or {})
        self._ask_approval = ask_approval
        self._calls: list[ExecArgs] = []
        self.started = asyncio.Event()

    async def execute(
        self,
        args: ExecArgs,
        policy: ApprovalPolicy,
        writable_roots: tuple[str, ...],
        approve: ApprovalCallback,
        cancel: AbortSignal,
    ) -> ExecutionResult:
        self._calls.append(args)
        self.started.set()

        if self._ask_approval:
            decision = approve(args.command, args.workdir or "")
            if decision != ApprovalDecision.APPROVE:
                return ExecutionResult(
                    output_text="aborted by user", metadata={"exit_code": 1, "denied": True},
                )

        program = args.command[0] if args.command else ""
        if program in self._blocking:
            await cancel.wait()
            return ExecutionResult(output_text="aborted", metadata={"exit_code": -1}, cancelled=True)

        if program in self._delays:
            await asyncio.sleep(self._delays[program])

        if self._index < len(self._results):
            result = self._results[self._index]
            self._index += 1
        else:
            result = self._results[-1]
        return result

    # --- Test helpers ---

    @property
    def calls(self) -> list[ExecArgs]:
        """All argument sets passed to execute, in order."""
        return list(self._calls)

    @property
    def call_count(self) -> int:
        return len(self._calls)
