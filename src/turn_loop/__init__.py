"""Turn Loop: a streaming agent loop with server-side conversation state."""

from turn_loop.abort import AbortController, AbortSignal
from turn_loop.arguments import ExecArgs, ParsedArgs, parse
from turn_loop.config import LoopConfig, LoopState
from turn_loop.consumer import ConsumerState, StreamingResponseConsumer, TurnResult
from turn_loop.controller import AgentLoop, LoopResult, deny_all
from turn_loop.dispatcher import (
    NO_FUNCTION_FOUND,
    DispatchContext,
    FunctionCallDispatcher,
    PendingCallSet,
)
from turn_loop.errors import (
    ArgumentError,
    LoopError,
    MalformedArguments,
    ProtocolViolation,
    SessionClosedError,
    TransportError,
    TurnError,
    UnknownTool,
)
from turn_loop.events import EventEmitter
from turn_loop.gateway.types import (
    ApprovalDecision,
    ApprovalPolicy,
    ExecutionGateway,
    ExecutionResult,
    auto_approve,
)
from turn_loop.items import (
    AssistantMessage,
    CallStatus,
    FunctionCall,
    FunctionCallOutput,
    ReasoningSummary,
    TurnItem,
    TurnLedger,
    UserInput,
)
from turn_loop.reasoning import ReasoningConfig, reasoning_for_model
from turn_loop.state import ConversationState
from turn_loop.tools.registry import RegisteredTool, ToolDefinition, ToolRegistry

__all__ = [
    # Core orchestrator
    "AgentLoop",
    "LoopResult",
    "LoopConfig",
    "LoopState",
    "ConversationState",
    # Streaming and dispatch
    "StreamingResponseConsumer",
    "ConsumerState",
    "TurnResult",
    "FunctionCallDispatcher",
    "DispatchContext",
    "PendingCallSet",
    "NO_FUNCTION_FOUND",
    # Items
    "TurnItem",
    "UserInput",
    "AssistantMessage",
    "ReasoningSummary",
    "FunctionCall",
    "FunctionCallOutput",
    "CallStatus",
    "TurnLedger",
    # Arguments and tools
    "ExecArgs",
    "ParsedArgs",
    "parse",
    "ToolDefinition",
    "RegisteredTool",
    "ToolRegistry",
    # Execution
    "ExecutionGateway",
    "ExecutionResult",
    "ApprovalPolicy",
    "ApprovalDecision",
    "auto_approve",
    "deny_all",
    "AbortController",
    "AbortSignal",
    # Reasoning
    "ReasoningConfig",
    "reasoning_for_model",
    # Events
    "EventEmitter",
    # Errors
    "LoopError",
    "ArgumentError",
    "MalformedArguments",
    "UnknownTool",
    "TurnError",
    "TransportError",
    "ProtocolViolation",
    "SessionClosedError",
]
