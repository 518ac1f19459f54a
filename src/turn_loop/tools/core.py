"""Built-in command-execution tools.

``shell`` and ``container.exec`` share one parameter schema and both decode to
ExecArgs; execution itself is delegated to the ExecutionGateway.
"""

from __future__ import annotations

from typing import Any

from turn_loop.arguments import build_exec_args
from turn_loop.tools.registry import RegisteredTool, ToolDefinition, ToolRegistry


EXEC_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {
            "type": "array",
            "items": {"type": "string"},
            "description": "The command and its arguments, e.g. [\"ls\", \"-la\"]",
        },
        "workdir": {"type": "string", "description": "Working directory for the command"},
        "timeout_ms": {"type": "integer", "description": "Timeout in milliseconds"},
    },
    "required": ["command"],
}

SHELL_DEFINITION = ToolDefinition(
    name="shell",
    description="Runs a shell command, and returns its output.",
    parameters=EXEC_PARAMETERS,
)

CONTAINER_EXEC_DEFINITION = ToolDefinition(
    name="container.exec",
    description="Runs a command inside the sandboxed container, and returns its output.",
    parameters=EXEC_PARAMETERS,
)

CORE_TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    "shell": SHELL_DEFINITION,
    "container.exec": CONTAINER_EXEC_DEFINITION,
}


def register_core_tools(registry: ToolRegistry, exclude: set[str] | None = None) -> None:
    """Register the built-in tools onto *registry*, skipping names in *exclude*."""
    skip = exclude or set()
    for name, definition in CORE_TOOL_DEFINITIONS.items():
        if name in skip:
            continue
        registry.register(RegisteredTool(definition=definition, build_args=build_exec_args))


def default_registry() -> ToolRegistry:
    """A fresh registry holding every built-in tool."""
    registry = ToolRegistry()
    register_core_tools(registry)
    return registry
