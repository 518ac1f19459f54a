"""Request, configuration, and streaming event types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for automatic retry behaviour."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: bool = True
    on_retry: Callable[[int, Exception, float], None] | None = field(
        default=None, compare=False, hash=False
    )


@dataclass(frozen=True)
class ClientTimeout:
    """Timeout settings for the HTTP client, in seconds."""

    connect: float = 10.0
    read: float = 300.0
    write: float = 30.0


@dataclass(frozen=True)
class ResponseRequest:
    """One streaming request to the Responses endpoint.

    ``input`` holds only the items that are new for this turn; earlier
    context is referenced through ``previous_response_id``.
    """

    model: str
    input: tuple[dict[str, Any], ...] = ()
    instructions: str | None = None
    previous_response_id: str | None = None
    tools: tuple[dict[str, Any], ...] = ()
    reasoning: dict[str, str] | None = None
    parallel_tool_calls: bool = False
    stream: bool = True
    store: bool = True

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "input": list(self.input),
            "stream": self.stream,
            "store": self.store,
            "parallel_tool_calls": self.parallel_tool_calls,
        }
        if self.instructions:
            body["instructions"] = self.instructions
        if self.previous_response_id:
            body["previous_response_id"] = self.previous_response_id
        if self.tools:
            body["tools"] = list(self.tools)
        if self.reasoning:
            body["reasoning"] = dict(self.reasoning)
        return body


class StreamEventType(StrEnum):
    """Categories of events the client yields while streaming."""

    CREATED = "created"
    TEXT_DELTA = "text_delta"
    REASONING_DELTA = "reasoning_delta"
    ITEM_ADDED = "item_added"
    ITEM_DONE = "item_done"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """A single event emitted during streaming.

    ``item`` is the raw output item dict for ITEM_ADDED/ITEM_DONE.
    ``response_id`` is set on CREATED and COMPLETED; the COMPLETED value is
    the continuation token for the next request.
    """

    type: StreamEventType
    delta: str | None = None
    item: dict[str, Any] | None = None
    response_id: str | None = None
    usage: dict[str, Any] | None = None
    error: Exception | None = field(default=None, compare=False, hash=False)
    raw: dict[str, Any] | None = field(default=None, compare=False, hash=False)
