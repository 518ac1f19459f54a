"""Loop configuration and lifecycle state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from responses_llm.types import RetryPolicy
from turn_loop.gateway.types import ApprovalPolicy


class LoopState(Enum):
    AWAITING_INPUT = "awaiting_input"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    RESOLVING = "resolving"
    ENDED = "ended"


@dataclass(frozen=True)
class LoopConfig:
    """Configuration for an agent loop session."""

    model: str = "o4-mini"
    instructions: str = ""
    approval_policy: ApprovalPolicy = ApprovalPolicy.SUGGEST
    writable_roots: tuple[str, ...] = ()
    parallel_tool_calls: bool = False
    reasoning_effort: str | None = None  # overrides the per-model default
    max_auto_turns: int = 50  # follow-up turns per run() before giving up
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
