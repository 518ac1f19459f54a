"""Execution gateway types and protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from turn_loop.abort import AbortSignal
from turn_loop.arguments import ExecArgs


class ApprovalPolicy(Enum):
    """How much the gateway may run without asking."""

    SUGGEST = "suggest"          # Ask before every command
    AUTO_EDIT = "auto-edit"      # Known read-only commands run unasked
    FULL_AUTO = "full-auto"      # Anything inside a writable root runs unasked


class ApprovalDecision(Enum):
    APPROVE = "approve"
    DENY = "deny"


# Synchronous capability: given the command and workdir, decide.
ApprovalCallback = Callable[[tuple[str, ...], str], ApprovalDecision]


def auto_approve(command: tuple[str, ...], workdir: str) -> ApprovalDecision:
    return ApprovalDecision.APPROVE


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one gateway invocation.

    ``metadata`` carries at least ``exit_code``; ``additional_items`` are extra
    TurnItems to inject after the call's output, in order.
    """

    output_text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)
    additional_items: tuple[Any, ...] = ()
    cancelled: bool = False

    @property
    def exit_code(self) -> int | None:
        """The exit code, or None when the gateway reported something non-numeric."""
        value = self.metadata.get("exit_code", 0)
        if isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class ExecutionGateway(Protocol):
    """Where tool calls actually run.

    Implementations must honour *cancel* by returning promptly with
    ``cancelled=True`` instead of hanging.
    """

    async def execute(
        self,
        args: ExecArgs,
        policy: ApprovalPolicy,
        writable_roots: tuple[str, ...],
        approve: ApprovalCallback,
        cancel: AbortSignal,
    ) -> ExecutionResult: ...
