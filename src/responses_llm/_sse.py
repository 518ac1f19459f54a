"""Server-Sent Events parsing for the streaming Responses endpoint."""
from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Sentinel some servers send after the last real event
DONE_MARKER = "[DONE]"


@dataclass
class SSEEvent:
    """Accumulated SSE event data."""

    event: str = "message"
    data: str = ""
    id: str = ""
    retry: int | None = None


class _EventBuilder:
    """Collects fields until a blank line completes the event."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.event = SSEEvent()
        self.data_parts: list[str] = []

    def feed(self, field_name: str, value: str) -> None:
        if field_name == "event":
            self.event.event = value
        elif field_name == "data":
            self.data_parts.append(value)
        elif field_name == "id":
            self.event.id = value
        elif field_name == "retry":
            try:
                self.event.retry = int(value)
            except ValueError:
                pass
        # Unknown field names are ignored

    def build(self) -> SSEEvent | None:
        """Finish the current event. None if it carried no data."""
        if not self.data_parts:
            self.reset()
            return None
        event = self.event
        event.data = "\n".join(self.data_parts)
        self.reset()
        return event


def _split_field(line: str) -> tuple[str, str]:
    if ":" not in line:
        return line, ""
    field_name, _, value = line.partition(":")
    # At most one leading space belongs to the separator
    if value.startswith(" "):
        value = value[1:]
    return field_name, value


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
    """Parse raw SSE text lines into structured events.

    - Lines beginning with ``:`` are comments (ignored).
    - Blank lines dispatch the current event; events without data are dropped.
    - Field names: ``event``, ``data``, ``id``, ``retry``.
    """
    builder = _EventBuilder()

    async for raw_line in lines:
        line = raw_line.rstrip("\n").rstrip("\r")

        # Comment / keep-alive
        if line.startswith(":"):
            continue

        if line == "":
            event = builder.build()
            if event is not None:
                yield event
            continue

        builder.feed(*_split_field(line))

    # Stream closed without a trailing blank line
    event = builder.build()
    if event is not None:
        yield event


async def parse_sse_json(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, dict[str, Any]]]:
    """Yield ``(event_type, payload)`` for every JSON object event.

    The event type falls back to the payload's ``type`` field when the server
    sends unnamed events. The ``[DONE]`` marker and undecodable or non-object
    payloads are skipped.
    """
    async for sse_event in parse_sse_lines(lines):
        if sse_event.data == DONE_MARKER:
            continue
        try:
            payload = json.loads(sse_event.data)
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable SSE payload: %.200s", sse_event.data)
            continue
        if not isinstance(payload, dict):
            logger.warning("Skipping non-object SSE payload: %.200s", sse_event.data)
            continue

        event_type = sse_event.event
        if event_type == "message":
            event_type = payload.get("type", "")
        yield event_type, payload
