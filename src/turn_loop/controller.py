"""Agent loop controller: drives turns against the remote service."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace

from responses_llm._retry import with_retry
from responses_llm.client import StreamingClient
from responses_llm.errors import AccessDeniedError, AuthenticationError, SDKError
from responses_llm.types import ResponseRequest, StreamEvent
from turn_loop.abort import AbortController
from turn_loop.config import LoopConfig, LoopState
from turn_loop.consumer import ConsumerState, StreamingResponseConsumer, TurnResult
from turn_loop.dispatcher import DispatchContext, FunctionCallDispatcher
from turn_loop.errors import ProtocolViolation, SessionClosedError, TransportError, TurnError
from turn_loop.events import (
    EventEmitter,
    RetryScheduledEvent,
    SessionEndEvent,
    TurnCancelledEvent,
    TurnCompletedEvent,
    TurnFailedEvent,
    TurnStartedEvent,
)
from turn_loop.gateway.types import ApprovalCallback, ApprovalDecision, ExecutionGateway
from turn_loop.instructions import merge_instructions
from turn_loop.items import CallStatus, TurnItem, TurnLedger, UserInput
from turn_loop.reasoning import reasoning_for_model
from turn_loop.state import ConversationState
from turn_loop.tools.core import default_registry
from turn_loop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# Errors no amount of retrying or re-prompting will fix.
_FATAL_TRANSPORT_ERRORS = (AuthenticationError, AccessDeniedError)


def deny_all(command: tuple[str, ...], workdir: str) -> ApprovalDecision:
    return ApprovalDecision.DENY


@dataclass
class LoopResult:
    """Everything one ``run()`` produced, one TurnResult per turn issued."""

    turns: list[TurnResult] = field(default_factory=list)
    hit_turn_limit: bool = False

    @property
    def cancelled(self) -> bool:
        return bool(self.turns) and self.turns[-1].cancelled

    @property
    def text(self) -> str:
        """Text streamed by the final turn."""
        return self.turns[-1].text if self.turns else ""

    @property
    def staged(self) -> list[TurnItem]:
        return [item for turn in self.turns for item in turn.staged]


class AgentLoop:
    """Top-level driver for a conversation with tool use.

    Each turn sends only new items (user input and the previous turn's call
    outputs) plus the continuation token, never the full history. Turns run
    strictly one at a time.
    """

    def __init__(
        self,
        client: StreamingClient,
        gateway: ExecutionGateway,
        config: LoopConfig | None = None,
        registry: ToolRegistry | None = None,
        approval_callback: ApprovalCallback = deny_all,
        event_emitter: EventEmitter | None = None,
        project_docs: list[str] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.client = client
        self.config = config or LoopConfig()
        self.registry = registry or default_registry()
        self.approval_callback = approval_callback
        self.event_emitter = event_emitter or EventEmitter()
        self.dispatcher = FunctionCallDispatcher(gateway, self.registry, self.event_emitter)
        self.loop_state = LoopState.AWAITING_INPUT
        self.conversation = ConversationState(
            model=self.config.model,
            instructions=merge_instructions(
                user_instructions=self.config.instructions, project_docs=project_docs,
            ),
            reasoning=reasoning_for_model(self.config.model, self.config.reasoning_effort),
        )

        self._turn_index = 0
        self._carry: list[TurnItem] = []
        self._abort: AbortController | None = None
        self._running = False
        self._cancel_requested = False

    # --- Public API ---

    async def run(self, user_input: str | None = None) -> LoopResult:
        """Send *user_input* and keep turning until no call outputs remain.

        With no input, only items owed from a cancelled turn are sent.
        Raises TurnError subclasses for transport and protocol failures.
        """
        if self.loop_state == LoopState.ENDED:
            raise SessionClosedError("Agent loop is closed")
        if self._running:
            raise RuntimeError("A run is already in progress")

        items: list[TurnItem] = list(self._carry)
        if user_input is not None:
            items.append(UserInput(content=user_input))
        if not items:
            raise ValueError("Nothing to send: no user input and no pending outputs")

        self._carry = []
        self._running = True
        self._cancel_requested = False
        result = LoopResult()
        try:
            while True:
                if len(result.turns) >= self.config.max_auto_turns:
                    logger.warning("Auto turn limit (%d) reached", self.config.max_auto_turns)
                    result.hit_turn_limit = True
                    self._carry = items
                    break

                turn = await self._run_turn(items)
                result.turns.append(turn)

                if turn.cancelled:
                    # Outputs the server is still owed go out with the next run.
                    if turn.completed:
                        self._carry = list(turn.outputs)
                    else:
                        self._carry = [i for i in items if not isinstance(i, UserInput)]
                    break
                if not turn.outputs:
                    break
                items = list(turn.outputs)
        except TurnError:
            # The failed turn never advanced the token; its input is still owed.
            self._carry = [i for i in items if not isinstance(i, UserInput)]
            raise
        finally:
            self._running = False
            self._abort = None
            if self.loop_state != LoopState.ENDED:
                self.loop_state = LoopState.AWAITING_INPUT
        return result

    def cancel(self) -> None:
        """Abort the current turn: stop streaming and abort in-flight calls."""
        if self._running:
            self._cancel_requested = True
        if self._abort is not None:
            logger.info("Cancelling turn %d", self._turn_index)
            self._abort.abort("cancelled by caller")

    def close(self) -> None:
        """End the session; no further input is accepted."""
        self.cancel()
        self.loop_state = LoopState.ENDED
        self.event_emitter.emit(SessionEndEvent(reason="closed"))

    @property
    def pending_items(self) -> list[TurnItem]:
        """Outputs owed to the server, sent at the start of the next run."""
        return list(self._carry)

    # --- Private methods ---

    async def _run_turn(self, items: list[TurnItem]) -> TurnResult:
        self._turn_index += 1
        abort = AbortController()
        self._abort = abort
        if self._cancel_requested:
            abort.abort("cancelled by caller")

        request = ResponseRequest(
            model=self.conversation.model,
            input=tuple(item.to_wire() for item in items),
            instructions=self.conversation.instructions or None,
            previous_response_id=self.conversation.previous_response_id,
            tools=tuple(td.to_wire() for td in self.registry.definitions()),
            reasoning=self.conversation.reasoning.to_wire() if self.conversation.reasoning else None,
            parallel_tool_calls=self.config.parallel_tool_calls,
        )
        self.event_emitter.emit(TurnStartedEvent(
            turn_index=self._turn_index,
            input_count=len(items),
            previous_response_id=self.conversation.previous_response_id,
        ))
        logger.info(
            "Turn %d: sending %d item(s), previous_response_id=%s",
            self._turn_index, len(items), self.conversation.previous_response_id,
        )

        self.loop_state = LoopState.REQUESTING
        try:
            opened = await self._open_stream(request, abort)
        except TurnError as e:
            self._fail(e)
            raise
        if opened is None:
            return self._cancelled(TurnResult(cancelled=True))
        stream, first_event = opened

        self.loop_state = LoopState.STREAMING
        consumer = StreamingResponseConsumer(
            self.dispatcher,
            DispatchContext(
                ledger=TurnLedger(),
                policy=self.config.approval_policy,
                writable_roots=self.config.writable_roots,
                approve=self.approval_callback,
                cancel=abort.signal,
            ),
            abort,
            self.event_emitter,
            on_state=self._on_consumer_state,
        )
        try:
            turn = await consumer.consume(stream, first_event)
        except TurnError as e:
            self._fail(e)
            raise

        if turn.completed:
            self.conversation = self.conversation.advance(turn.response_id)
        if turn.cancelled:
            return self._cancelled(turn)

        self.event_emitter.emit(TurnCompletedEvent(
            turn_index=self._turn_index,
            response_id=turn.response_id,
            output_count=len(turn.call_outputs),
            usage=turn.usage,
        ))
        logger.info(
            "Turn %d complete: response_id=%s calls=%d",
            self._turn_index, turn.response_id, len(turn.calls),
        )
        return turn

    async def _open_stream(
        self,
        request: ResponseRequest,
        abort: AbortController,
    ) -> tuple[AsyncIterator[StreamEvent], StreamEvent] | None:
        """Establish the stream and read its first event, retrying transport failures.

        Returns None when the turn is cancelled before the stream opens.
        """
        attempts = 0

        async def attempt() -> tuple[AsyncIterator[StreamEvent], StreamEvent]:
            nonlocal attempts
            attempts += 1
            stream = self.client.stream(request).__aiter__()
            try:
                first = await stream.__anext__()
            except StopAsyncIteration:
                raise ProtocolViolation("stream closed before any event") from None
            except BaseException:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()
                raise
            return stream, first

        def on_retry(attempt_index: int, exc: Exception, delay: float) -> None:
            self.event_emitter.emit(RetryScheduledEvent(
                attempt=attempt_index + 1, delay=delay, error=str(exc),
            ))
            user_hook = self.config.retry_policy.on_retry
            if user_hook is not None:
                user_hook(attempt_index, exc, delay)

        policy = replace(self.config.retry_policy, on_retry=on_retry)
        opening = asyncio.ensure_future(with_retry(attempt, policy))
        aborted = asyncio.ensure_future(abort.signal.wait())
        try:
            done, _ = await asyncio.wait({opening, aborted}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            opening.cancel()
            raise
        finally:
            aborted.cancel()

        if opening not in done:
            opening.cancel()
            await asyncio.gather(opening, return_exceptions=True)
            return None

        try:
            return opening.result()
        except SDKError as e:
            if isinstance(e, _FATAL_TRANSPORT_ERRORS):
                self.loop_state = LoopState.ENDED
            raise TransportError(
                f"could not establish stream after {attempts} attempt(s): {e}",
                attempts=attempts,
                cause=e,
            ) from e

    def _on_consumer_state(self, state: ConsumerState) -> None:
        if state == ConsumerState.DRAINING:
            self.loop_state = LoopState.RESOLVING

    def _cancelled(self, turn: TurnResult) -> TurnResult:
        aborted = sum(1 for o in turn.call_outputs if o.status == CallStatus.ABORTED)
        self.event_emitter.emit(TurnCancelledEvent(turn_index=self._turn_index, aborted_calls=aborted))
        logger.info("Turn %d cancelled (%d call(s) aborted)", self._turn_index, aborted)
        return turn

    def _fail(self, error: TurnError) -> None:
        logger.error("Turn %d failed: %s", self._turn_index, error)
        self.event_emitter.emit(TurnFailedEvent(turn_index=self._turn_index, error=str(error)))
