"""Tests for the streaming response consumer."""

import asyncio

import pytest

from responses_llm.errors import NetworkError
from responses_llm.types import StreamEvent, StreamEventType
from turn_loop.abort import AbortController
from turn_loop.consumer import ConsumerState, StreamingResponseConsumer
from turn_loop.dispatcher import DispatchContext, FunctionCallDispatcher
from turn_loop.errors import ProtocolViolation, TransportError
from turn_loop.events import EventEmitter, ItemStagedEvent, TextDeltaEvent
from turn_loop.gateway.stub import StubExecutionGateway
from turn_loop.gateway.types import ApprovalPolicy, ExecutionResult, auto_approve
from turn_loop.items import AssistantMessage, CallStatus, FunctionCall, FunctionCallOutput, TurnLedger


# --- Helpers ---


def _call_item(call_id, command=("ls",)):
    args = '{"command": [%s]}' % ", ".join(f'"{c}"' for c in command)
    return {"type": "function_call", "id": f"fc_{call_id}", "call_id": call_id,
            "name": "shell", "arguments": args}


def _added(call_id):
    return StreamEvent(type=StreamEventType.ITEM_ADDED,
                       item={"type": "function_call", "id": f"fc_{call_id}", "call_id": call_id})


def _done(item):
    return StreamEvent(type=StreamEventType.ITEM_DONE, item=item)


def _text(delta):
    return StreamEvent(type=StreamEventType.TEXT_DELTA, delta=delta)


def _completed(response_id="resp_1"):
    return StreamEvent(type=StreamEventType.COMPLETED, response_id=response_id, usage={"total_tokens": 3})


def _message(text):
    return {"type": "message", "id": "msg_1", "role": "assistant",
            "content": [{"type": "output_text", "text": text}]}


async def _stream(*events, error=None, hang=False):
    for event in events:
        yield event
    if error is not None:
        raise error
    if hang:
        await asyncio.Event().wait()


def _consumer(gateway=None, controller=None, emitter=None, states=None):
    controller = controller or AbortController()
    dispatcher = FunctionCallDispatcher(gateway or StubExecutionGateway(), event_emitter=emitter)
    context = DispatchContext(
        ledger=TurnLedger(),
        policy=ApprovalPolicy.FULL_AUTO,
        writable_roots=(),
        approve=auto_approve,
        cancel=controller.signal,
    )
    return StreamingResponseConsumer(
        dispatcher, context, controller, emitter,
        on_state=states.append if states is not None else None,
    )


# --- Happy path ---


class TestConsume:
    @pytest.mark.asyncio
    async def test_text_only_turn(self):
        emitter = EventEmitter()
        deltas = []
        emitter.subscribe(TextDeltaEvent, lambda e: deltas.append(e.text))
        states = []
        consumer = _consumer(emitter=emitter, states=states)

        result = await consumer.consume(_stream(
            _text("Hel"), _text("lo"), _done(_message("Hello")), _completed(),
        ))

        assert result.text == "Hello"
        assert deltas == ["Hel", "lo"]
        assert result.staged == [AssistantMessage(content="Hello", id="msg_1")]
        assert result.outputs == []
        assert result.response_id == "resp_1"
        assert result.usage == {"total_tokens": 3}
        assert result.completed and not result.cancelled
        assert states == [ConsumerState.STREAMING, ConsumerState.DRAINING, ConsumerState.COMPLETE]
        assert consumer.state == ConsumerState.COMPLETE

    @pytest.mark.asyncio
    async def test_function_call_dispatched_and_drained(self):
        gateway = StubExecutionGateway(results=[
            ExecutionResult(output_text="file\n", metadata={"exit_code": 0}),
        ])
        result = await _consumer(gateway).consume(_stream(
            _added("call_1"), _done(_call_item("call_1", ("ls", "/tmp"))), _completed(),
        ))
        assert result.calls == [FunctionCall(
            id="fc_call_1", call_id="call_1", name="shell",
            raw_arguments='{"command": ["ls", "/tmp"]}',
        )]
        assert len(result.call_outputs) == 1
        assert result.call_outputs[0].call_id == "call_1"
        assert result.call_outputs[0].payload["output"] == "file\n"

    @pytest.mark.asyncio
    async def test_outputs_in_dispatch_order(self):
        # The first call finishes last.
        gateway = StubExecutionGateway(delays={"slow": 0.1, "fast": 0.0})
        result = await _consumer(gateway).consume(_stream(
            _done(_call_item("a", ("slow",))),
            _done(_call_item("b", ("fast",))),
            _completed(),
        ))
        assert [o.call_id for o in result.call_outputs] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_every_call_gets_one_output(self):
        result = await _consumer().consume(_stream(
            _done(_call_item("a")),
            _done({"type": "function_call", "id": "fc_b", "call_id": "b",
                   "name": "nope", "arguments": "{}"}),
            _done({"type": "function_call", "id": "fc_c", "call_id": "c",
                   "name": "shell", "arguments": "{bad"}),
            _completed(),
        ))
        assert [(o.call_id, o.status) for o in result.call_outputs] == [
            ("a", CallStatus.COMPLETED),
            ("b", CallStatus.UNKNOWN_TOOL),
            ("c", CallStatus.MALFORMED_ARGUMENTS),
        ]

    @pytest.mark.asyncio
    async def test_first_event_handled_before_stream(self):
        result = await _consumer().consume(_stream(_completed()), first_event=_text("hi"))
        assert result.text == "hi"

    @pytest.mark.asyncio
    async def test_staged_items_emitted(self):
        emitter = EventEmitter()
        staged = []
        emitter.subscribe(ItemStagedEvent, lambda e: staged.append(e.item))
        await _consumer(emitter=emitter).consume(_stream(
            _done({"type": "reasoning", "id": "rs_1", "summary": []}),
            _done(_message("hi")),
            _completed(),
        ))
        assert [type(i).__name__ for i in staged] == ["ReasoningSummary", "AssistantMessage"]

    @pytest.mark.asyncio
    async def test_unknown_item_types_ignored(self):
        result = await _consumer().consume(_stream(
            _done({"type": "web_search_call", "id": "ws_1"}), _completed(),
        ))
        assert result.staged == []


# --- Protocol and transport failures ---


class TestFailures:
    @pytest.mark.asyncio
    async def test_stream_ends_without_completion(self):
        with pytest.raises(ProtocolViolation):
            await _consumer().consume(_stream(_text("partial")))

    @pytest.mark.asyncio
    async def test_completion_with_open_call(self):
        with pytest.raises(ProtocolViolation, match="unfinished"):
            await _consumer().consume(_stream(_added("call_1"), _completed()))

    @pytest.mark.asyncio
    async def test_duplicate_call_id(self):
        with pytest.raises(ProtocolViolation):
            await _consumer().consume(_stream(
                _done(_call_item("a")), _done(_call_item("a")), _completed(),
            ))

    @pytest.mark.asyncio
    async def test_error_event(self):
        with pytest.raises(ProtocolViolation, match="overloaded"):
            await _consumer().consume(_stream(StreamEvent(
                type=StreamEventType.ERROR, error=RuntimeError("overloaded"),
            )))

    @pytest.mark.asyncio
    async def test_transport_failure_mid_stream(self):
        with pytest.raises(TransportError) as exc_info:
            await _consumer().consume(_stream(_text("a"), error=NetworkError("reset")))
        assert isinstance(exc_info.value.cause, NetworkError)

    @pytest.mark.asyncio
    async def test_failure_aborts_in_flight_calls(self):
        gateway = StubExecutionGateway(blocking={"sleep"})
        controller = AbortController()
        with pytest.raises(ProtocolViolation):
            await asyncio.wait_for(
                _consumer(gateway, controller).consume(_stream(_done(_call_item("a", ("sleep",))))),
                timeout=5,
            )
        assert controller.signal.aborted


# --- Cancellation ---


class TestCancellation:
    @pytest.mark.asyncio
    async def test_abort_while_waiting_for_events(self):
        gateway = StubExecutionGateway(blocking={"sleep"})
        controller = AbortController()
        consumer = _consumer(gateway, controller)
        task = asyncio.ensure_future(consumer.consume(
            _stream(_done(_call_item("a", ("sleep", "100"))), hang=True),
        ))
        await gateway.started.wait()
        controller.abort()
        result = await asyncio.wait_for(task, timeout=5)

        assert result.cancelled
        assert not result.completed
        assert [(o.call_id, o.status) for o in result.call_outputs] == [("a", CallStatus.ABORTED)]
        assert consumer.state == ConsumerState.COMPLETE

    @pytest.mark.asyncio
    async def test_abort_during_drain(self):
        gateway = StubExecutionGateway(blocking={"sleep"})
        controller = AbortController()
        consumer = _consumer(gateway, controller)
        task = asyncio.ensure_future(consumer.consume(
            _stream(_done(_call_item("a", ("sleep",))), _completed()),
        ))
        while consumer.state != ConsumerState.DRAINING:
            await asyncio.sleep(0.001)
        controller.abort()
        result = await asyncio.wait_for(task, timeout=5)

        assert result.completed
        assert result.cancelled
        assert result.response_id == "resp_1"
        assert isinstance(result.outputs[0], FunctionCallOutput)
        assert result.outputs[0].status == CallStatus.ABORTED
