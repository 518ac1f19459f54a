"""Tool registry, definitions, and built-in tools."""

from turn_loop.tools.core import (
    CORE_TOOL_DEFINITIONS,
    EXEC_PARAMETERS,
    default_registry,
    register_core_tools,
)
from turn_loop.tools.registry import RegisteredTool, ToolDefinition, ToolRegistry

__all__ = [
    "CORE_TOOL_DEFINITIONS",
    "EXEC_PARAMETERS",
    "RegisteredTool",
    "ToolDefinition",
    "ToolRegistry",
    "default_registry",
    "register_core_tools",
]
