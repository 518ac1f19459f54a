"""Execution gateway abstraction and implementations."""

from turn_loop.gateway.local import EnvVarPolicy, LocalExecutionGateway, is_safe_command
from turn_loop.gateway.stub import StubExecutionGateway
from turn_loop.gateway.types import (
    ApprovalCallback,
    ApprovalDecision,
    ApprovalPolicy,
    ExecutionGateway,
    ExecutionResult,
    auto_approve,
)

__all__ = [
    "ApprovalCallback",
    "ApprovalDecision",
    "ApprovalPolicy",
    "EnvVarPolicy",
    "ExecutionGateway",
    "ExecutionResult",
    "LocalExecutionGateway",
    "StubExecutionGateway",
    "auto_approve",
    "is_safe_command",
]
