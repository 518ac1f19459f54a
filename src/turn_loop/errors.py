"""Error taxonomy for the agent loop.

Per-call errors (``MalformedArguments``, ``UnknownTool``) are raised inside the
dispatcher and always converted into a ``FunctionCallOutput``; they never reach
the caller of ``AgentLoop.run``. Turn-level errors (``TurnError`` subclasses)
propagate to the caller.
"""

from __future__ import annotations


class LoopError(Exception):
    """Base error for all turn_loop errors."""


class ArgumentError(LoopError):
    """An item or pending-set operation violated a pairing invariant."""


# --- Per-call errors ---


class MalformedArguments(LoopError):
    """Raw tool arguments could not be decoded or failed schema validation."""

    def __init__(self, message: str, *, tool_name: str = "") -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnknownTool(LoopError):
    """A function call named a tool that is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"no function found: {name}")
        self.name = name


# --- Turn-level errors ---


class TurnError(LoopError):
    """A fault that ends the current turn and is surfaced to the caller."""


class TransportError(TurnError):
    """The event stream could not be established or broke mid-turn."""

    def __init__(self, message: str, *, attempts: int = 1, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class ProtocolViolation(TurnError):
    """The remote service sent an event sequence the turn cannot accept."""


class SessionClosedError(LoopError):
    """The loop was closed and accepts no further input."""
