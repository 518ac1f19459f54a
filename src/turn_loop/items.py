"""Turn items: the units exchanged with the remote service."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from turn_loop.errors import ArgumentError, ProtocolViolation


class CallStatus(Enum):
    """How a function call was resolved. Local only, never sent on the wire."""

    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"
    UNKNOWN_TOOL = "unknown_tool"
    MALFORMED_ARGUMENTS = "malformed_arguments"


@dataclass(frozen=True)
class UserInput:
    """Text supplied by the user."""

    content: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": self.content}],
        }


@dataclass(frozen=True)
class AssistantMessage:
    """Text produced by the model."""

    content: str
    id: str = ""

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": self.content}],
        }
        if self.id:
            wire["id"] = self.id
        return wire


@dataclass(frozen=True)
class ReasoningSummary:
    """Summary of the model's internal reasoning, when summarization is on."""

    id: str
    summary: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "\n\n".join(self.summary)

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "reasoning",
            "id": self.id,
            "summary": [{"type": "summary_text", "text": s} for s in self.summary],
        }


@dataclass(frozen=True)
class FunctionCall:
    """A tool invocation requested by the model.

    ``id`` is the item id; ``call_id`` is what the matching output refers to.
    ``raw_arguments`` is the untrusted serialized argument object.
    """

    id: str
    call_id: str
    name: str
    raw_arguments: str = ""

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function_call",
            "id": self.id,
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.raw_arguments,
        }


@dataclass(frozen=True)
class FunctionCallOutput:
    """The result of one function call, fed back on the next turn."""

    call_id: str
    output: str
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)
    status: CallStatus = CallStatus.COMPLETED

    @property
    def payload(self) -> Any:
        """The output decoded as JSON, or the raw string when it is not JSON."""
        try:
            return json.loads(self.output)
        except (json.JSONDecodeError, ValueError):
            return self.output

    def to_wire(self) -> dict[str, Any]:
        return {"type": "function_call_output", "call_id": self.call_id, "output": self.output}


# Type alias for all item types
TurnItem = UserInput | AssistantMessage | ReasoningSummary | FunctionCall | FunctionCallOutput


def item_from_wire(wire: dict[str, Any]) -> TurnItem:
    """Build a TurnItem from a Responses output item dict.

    Raises ProtocolViolation for item types this loop does not understand.
    """
    item_type = wire.get("type", "")

    if item_type == "message":
        texts = [
            block.get("text", "")
            for block in wire.get("content", [])
            if block.get("type") in ("output_text", "input_text")
        ]
        if wire.get("role") == "user":
            return UserInput(content="".join(texts))
        return AssistantMessage(content="".join(texts), id=wire.get("id", ""))

    if item_type == "function_call":
        call_id = wire.get("call_id") or wire.get("id")
        if not call_id or not wire.get("name"):
            raise ProtocolViolation(f"function_call item missing call_id or name: {wire!r}")
        return FunctionCall(
            id=wire.get("id", ""),
            call_id=call_id,
            name=wire["name"],
            raw_arguments=wire.get("arguments", ""),
        )

    if item_type == "function_call_output":
        return FunctionCallOutput(call_id=wire["call_id"], output=wire.get("output", ""))

    if item_type == "reasoning":
        return ReasoningSummary(
            id=wire.get("id", ""),
            summary=tuple(s.get("text", "") for s in wire.get("summary", [])),
        )

    raise ProtocolViolation(f"Unsupported item type: {item_type!r}")


class TurnLedger:
    """Calls issued in the current turn, in issue order.

    The only way the dispatcher builds a FunctionCallOutput, so every output
    refers to a call issued in this turn and no call is answered twice.
    """

    def __init__(self) -> None:
        self._issued: dict[str, FunctionCall] = {}
        self._answered: set[str] = set()

    def issue(self, call: FunctionCall) -> None:
        if call.call_id in self._issued:
            raise ArgumentError(f"call_id {call.call_id!r} issued twice in one turn")
        self._issued[call.call_id] = call

    def output_for(
        self,
        call_id: str,
        output: str,
        metadata: dict[str, Any] | None = None,
        status: CallStatus = CallStatus.COMPLETED,
    ) -> FunctionCallOutput:
        if call_id not in self._issued:
            raise ArgumentError(f"No call {call_id!r} was issued in this turn")
        if call_id in self._answered:
            raise ArgumentError(f"Call {call_id!r} already has an output")
        self._answered.add(call_id)
        return FunctionCallOutput(
            call_id=call_id, output=output, metadata=dict(metadata or {}), status=status,
        )

    def is_issued(self, call_id: str) -> bool:
        return call_id in self._issued

    @property
    def calls(self) -> list[FunctionCall]:
        return list(self._issued.values())

    @property
    def unanswered(self) -> list[str]:
        return [cid for cid in self._issued if cid not in self._answered]
