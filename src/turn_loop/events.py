"""Event system for the agent loop.

Hosts subscribe to these to render streamed text, show tool activity, and
record history; the loop itself never depends on a listener being present.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class TurnStartedEvent:
    turn_index: int
    input_count: int
    previous_response_id: str | None = None


@dataclass(frozen=True)
class TextDeltaEvent:
    text: str


@dataclass(frozen=True)
class ReasoningDeltaEvent:
    text: str


@dataclass(frozen=True)
class ItemStagedEvent:
    item: Any


@dataclass(frozen=True)
class CallDispatchedEvent:
    call_id: str
    name: str
    raw_arguments: str = ""


@dataclass(frozen=True)
class CallResolvedEvent:
    call_id: str
    status: str
    output: str = ""


@dataclass(frozen=True)
class TurnCompletedEvent:
    turn_index: int
    response_id: str | None
    output_count: int = 0
    usage: dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class TurnFailedEvent:
    turn_index: int
    error: str


@dataclass(frozen=True)
class TurnCancelledEvent:
    turn_index: int
    aborted_calls: int = 0


@dataclass(frozen=True)
class RetryScheduledEvent:
    attempt: int
    delay: float
    error: str


@dataclass(frozen=True)
class SessionEndEvent:
    reason: str = "closed"


class EventEmitter:
    """Synchronous callback-based event emitter.

    Events are dispatched synchronously in registration order.
    """

    def __init__(self) -> None:
        self._listeners: dict[type, list[Callable]] = {}
        self._global_listeners: list[Callable] = []

    def subscribe(self, event_type: type, callback: Callable) -> None:
        """Register a callback for a specific event type."""
        self._listeners.setdefault(event_type, []).append(callback)

    def on_all(self, callback: Callable) -> None:
        """Register a callback that receives every event."""
        self._global_listeners.append(callback)

    def emit(self, event: Any) -> None:
        """Dispatch event to all matching listeners."""
        for cb in self._global_listeners:
            cb(event)
        for cb in self._listeners.get(type(event), []):
            cb(event)
