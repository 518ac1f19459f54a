"""Function call dispatcher: resolves calls to local actions and builds outputs.

Every dispatched call ends with exactly one FunctionCallOutput: a result, a
per-call failure (unknown tool, malformed arguments, execution error) or an
abort marker. Per-call errors never escape as exceptions.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from turn_loop.abort import AbortSignal
from turn_loop.arguments import ExecArgs, parse
from turn_loop.errors import ArgumentError, MalformedArguments, UnknownTool
from turn_loop.events import CallDispatchedEvent, CallResolvedEvent, EventEmitter
from turn_loop.gateway.types import (
    ApprovalCallback,
    ApprovalPolicy,
    ExecutionGateway,
    ExecutionResult,
)
from turn_loop.items import CallStatus, FunctionCall, FunctionCallOutput, TurnItem, TurnLedger
from turn_loop.tools.core import default_registry
from turn_loop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_FUNCTION_FOUND = "no function found"
ABORTED_OUTPUT = "aborted"

# How long an aborted gateway call may take to hand back its own result
ABORT_GRACE_SECONDS = 1.0


class PendingCallSet:
    """Call ids dispatched but not yet resolved in the current turn."""

    def __init__(self) -> None:
        self._ids: dict[str, None] = {}

    def add(self, call_id: str) -> None:
        if call_id in self._ids:
            raise ArgumentError(f"Call {call_id!r} is already pending")
        self._ids[call_id] = None

    def discard(self, call_id: str) -> None:
        self._ids.pop(call_id, None)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(list(self._ids))


@dataclass(frozen=True)
class DispatchContext:
    """Everything a call needs beyond the call itself, scoped to one turn."""

    ledger: TurnLedger
    policy: ApprovalPolicy
    writable_roots: tuple[str, ...]
    approve: ApprovalCallback
    cancel: AbortSignal


def _payload(output: str, metadata: dict[str, Any]) -> str:
    # Gateways may put arbitrary values in metadata.
    return json.dumps({"output": output, "metadata": metadata}, default=str)


class FunctionCallDispatcher:
    """Maps function calls onto the closed tool registry and the gateway."""

    def __init__(
        self,
        gateway: ExecutionGateway,
        registry: ToolRegistry | None = None,
        event_emitter: EventEmitter | None = None,
    ) -> None:
        self.gateway = gateway
        self.registry = registry or default_registry()
        self.event_emitter = event_emitter or EventEmitter()
        self.pending = PendingCallSet()

    def register(self, call: FunctionCall, ledger: TurnLedger) -> None:
        """Record *call* as issued and in flight, before any execution starts."""
        ledger.issue(call)
        self.pending.add(call.call_id)
        self.event_emitter.emit(CallDispatchedEvent(
            call_id=call.call_id, name=call.name, raw_arguments=call.raw_arguments,
        ))

    async def dispatch(self, call: FunctionCall, context: DispatchContext) -> list[TurnItem]:
        """Resolve *call* and return its output item followed by any extra items."""
        if call.call_id not in self.pending:
            self.register(call, context.ledger)
        try:
            output, extra = await self._resolve(call, context)
        finally:
            self.pending.discard(call.call_id)

        logger.debug("Call %s (%s) resolved: %s", call.call_id, call.name, output.status.value)
        self.event_emitter.emit(CallResolvedEvent(
            call_id=call.call_id, status=output.status.value, output=output.output,
        ))
        return [output, *extra]

    # --- Private methods ---

    async def _resolve(
        self, call: FunctionCall, ctx: DispatchContext,
    ) -> tuple[FunctionCallOutput, tuple[TurnItem, ...]]:
        ledger = ctx.ledger

        try:
            args = parse(call.raw_arguments, call.name, self.registry)
        except UnknownTool:
            logger.info("Unknown tool requested: %s", call.name)
            return ledger.output_for(call.call_id, NO_FUNCTION_FOUND, status=CallStatus.UNKNOWN_TOOL), ()
        except MalformedArguments as e:
            logger.info("Malformed arguments for %s (%s): %s", call.name, call.call_id, e)
            metadata = {"error": "malformed_arguments"}
            return ledger.output_for(
                call.call_id,
                _payload(f"failed to parse function call arguments: {e}", metadata),
                metadata,
                status=CallStatus.MALFORMED_ARGUMENTS,
            ), ()

        if ctx.cancel.aborted:
            return self._aborted(call, ctx), ()

        try:
            result = await self._execute(args, ctx)
        except Exception as e:
            logger.exception("Gateway failed executing %s (%s)", call.name, call.call_id)
            metadata = {"exit_code": -1, "error": "execution_failure"}
            return ledger.output_for(
                call.call_id,
                _payload(f"error executing {call.name}: {e}", metadata),
                metadata,
                status=CallStatus.FAILED,
            ), ()

        if result is None or result.cancelled:
            return self._aborted(call, ctx), ()

        # A non-numeric exit code counts as a failure.
        status = CallStatus.COMPLETED if result.exit_code == 0 else CallStatus.FAILED
        output = ledger.output_for(
            call.call_id,
            _payload(result.output_text, result.metadata),
            result.metadata,
            status=status,
        )
        return output, tuple(result.additional_items)

    async def _execute(self, args: ExecArgs, ctx: DispatchContext) -> ExecutionResult | None:
        """Run the gateway, racing the turn's abort signal. None means aborted."""
        exec_task = asyncio.ensure_future(self.gateway.execute(
            args, ctx.policy, ctx.writable_roots, ctx.approve, ctx.cancel,
        ))
        abort_task = asyncio.ensure_future(ctx.cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {exec_task, abort_task}, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            exec_task.cancel()
            raise
        finally:
            abort_task.cancel()

        if exec_task in done:
            return exec_task.result()

        # Aborted: let the gateway clean up briefly, then stop waiting on it.
        done, _ = await asyncio.wait({exec_task}, timeout=ABORT_GRACE_SECONDS)
        if not done:
            exec_task.cancel()
        elif not exec_task.cancelled() and exec_task.exception() is not None:
            logger.debug("Gateway raised after abort: %r", exec_task.exception())
        return None

    def _aborted(self, call: FunctionCall, ctx: DispatchContext) -> FunctionCallOutput:
        logger.warning("Call %s (%s) aborted: %s", call.call_id, call.name, ctx.cancel.reason)
        metadata = {"status": "aborted"}
        return ctx.ledger.output_for(
            call.call_id, _payload(ABORTED_OUTPUT, metadata), metadata, status=CallStatus.ABORTED,
        )
