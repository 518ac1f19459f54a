"""Streaming response consumer: one turn's event stream, as a state machine.

IDLE -> STREAMING on the first event. Function-call items are registered as
pending and dispatched as tasks without blocking the stream. The completion
marker moves to DRAINING, where every dispatched call is awaited; COMPLETE
once the pending set is empty.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from responses_llm.errors import SDKError
from responses_llm.types import StreamEvent, StreamEventType
from turn_loop.abort import AbortController
from turn_loop.dispatcher import DispatchContext, FunctionCallDispatcher
from turn_loop.errors import ArgumentError, ProtocolViolation, TransportError
from turn_loop.events import EventEmitter, ItemStagedEvent, ReasoningDeltaEvent, TextDeltaEvent
from turn_loop.items import FunctionCall, FunctionCallOutput, TurnItem, item_from_wire

logger = logging.getLogger(__name__)

STAGED_ITEM_TYPES = frozenset({"message", "reasoning", "function_call"})


class ConsumerState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DRAINING = "draining"
    COMPLETE = "complete"


@dataclass
class TurnResult:
    """What one turn produced.

    ``staged`` holds display/history items in arrival order; ``outputs`` holds
    the items for the next request, grouped per call in dispatch order.
    """

    staged: list[TurnItem] = field(default_factory=list)
    outputs: list[TurnItem] = field(default_factory=list)
    text: str = ""
    response_id: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)
    completed: bool = False
    cancelled: bool = False

    @property
    def calls(self) -> list[FunctionCall]:
        return [item for item in self.staged if isinstance(item, FunctionCall)]

    @property
    def call_outputs(self) -> list[FunctionCallOutput]:
        return [item for item in self.outputs if isinstance(item, FunctionCallOutput)]


class StreamingResponseConsumer:
    """Consumes the events of a single turn.

    Cancellation goes through *abort*: firing it stops reading the stream and
    resolves every pending call as aborted.
    """

    def __init__(
        self,
        dispatcher: FunctionCallDispatcher,
        context: DispatchContext,
        abort: AbortController,
        event_emitter: EventEmitter | None = None,
        on_state: Callable[[ConsumerState], None] | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.context = context
        self.abort = abort
        self.event_emitter = event_emitter or EventEmitter()
        self.state = ConsumerState.IDLE
        self._on_state = on_state
        self._result = TurnResult()
        self._text_parts: list[str] = []
        self._open_calls: set[str] = set()
        self._tasks: list[asyncio.Future[list[TurnItem]]] = []
        self._next_event: asyncio.Future[StreamEvent] | None = None

    async def consume(
        self,
        events: AsyncIterator[StreamEvent],
        first_event: StreamEvent | None = None,
    ) -> TurnResult:
        """Run the turn to COMPLETE and return its result.

        Raises ProtocolViolation or TransportError after aborting any
        in-flight calls; the turn's outputs are discarded in that case.
        """
        try:
            if first_event is not None:
                self._transition(ConsumerState.STREAMING)
                if self._handle(first_event):
                    return await self._drain()
            await self._read(events)
            return await self._drain()
        except BaseException:
            self.abort.abort("turn failed")
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise
        finally:
            if self._next_event is not None and not self._next_event.done():
                self._next_event.cancel()
                await asyncio.gather(self._next_event, return_exceptions=True)
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    # --- Private methods ---

    async def _read(self, events: AsyncIterator[StreamEvent]) -> None:
        """Read events until the completion marker or an abort."""
        signal = self.abort.signal
        iterator = events.__aiter__()
        while True:
            if signal.aborted:
                self._result.cancelled = True
                return
            next_event = asyncio.ensure_future(iterator.__anext__())
            self._next_event = next_event
            aborted = asyncio.ensure_future(signal.wait())
            try:
                done, _ = await asyncio.wait(
                    {next_event, aborted}, return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                aborted.cancel()

            if next_event not in done:
                next_event.cancel()
                await asyncio.gather(next_event, return_exceptions=True)
                self._result.cancelled = True
                logger.info("Stream abandoned: %s", signal.reason)
                return

            try:
                event = next_event.result()
            except StopAsyncIteration:
                raise ProtocolViolation("stream ended before the completion marker") from None
            except SDKError as e:
                raise TransportError(f"stream broke mid-turn: {e}", cause=e) from e

            if self.state == ConsumerState.IDLE:
                self._transition(ConsumerState.STREAMING)
            if self._handle(event):
                return

    def _handle(self, event: StreamEvent) -> bool:
        """Apply one event. Returns True on the completion marker."""
        etype = event.type

        if etype == StreamEventType.TEXT_DELTA:
            if event.delta:
                self._text_parts.append(event.delta)
                self.event_emitter.emit(TextDeltaEvent(text=event.delta))

        elif etype == StreamEventType.REASONING_DELTA:
            if event.delta:
                self.event_emitter.emit(ReasoningDeltaEvent(text=event.delta))

        elif etype == StreamEventType.ITEM_ADDED:
            item = event.item or {}
            if item.get("type") == "function_call":
                self._open_calls.add(item.get("call_id") or item.get("id", ""))

        elif etype == StreamEventType.ITEM_DONE:
            self._item_done(event.item or {})

        elif etype == StreamEventType.COMPLETED:
            if self._open_calls:
                raise ProtocolViolation(
                    f"response completed with unfinished function calls: {sorted(self._open_calls)}"
                )
            self._result.response_id = event.response_id
            self._result.usage = dict(event.usage or {})
            self._result.completed = True
            return True

        elif etype == StreamEventType.ERROR:
            raise ProtocolViolation(f"remote service reported an error: {event.error}")

        return False

    def _item_done(self, wire: dict[str, Any]) -> None:
        if wire.get("type") not in STAGED_ITEM_TYPES:
            logger.debug("Ignoring output item of type %r", wire.get("type"))
            return
        item = item_from_wire(wire)
        self._result.staged.append(item)
        self.event_emitter.emit(ItemStagedEvent(item=item))

        if isinstance(item, FunctionCall):
            self._open_calls.discard(item.call_id)
            self._open_calls.discard(item.id)
            try:
                self.dispatcher.register(item, self.context.ledger)
            except ArgumentError as e:
                raise ProtocolViolation(str(e)) from e
            self._tasks.append(asyncio.ensure_future(self.dispatcher.dispatch(item, self.context)))

    async def _drain(self) -> TurnResult:
        self._transition(ConsumerState.DRAINING)
        per_call = await asyncio.gather(*self._tasks)
        for items in per_call:
            self._result.outputs.extend(items)
        self._result.text = "".join(self._text_parts)
        if self.abort.signal.aborted:
            self._result.cancelled = True
        self._transition(ConsumerState.COMPLETE)
        return self._result

    def _transition(self, state: ConsumerState) -> None:
        logger.debug("Consumer %s -> %s", self.state.value, state.value)
        self.state = state
        if self._on_state is not None:
            self._on_state(state)
