"""Tool registry: definitions, registration, and lookup."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from turn_loop.arguments import ParsedArgs


@dataclass(frozen=True)
class ToolDefinition:
    """Schema definition for a tool advertised to the model."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict, hash=False)  # JSON Schema, root type "object"

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "strict": False,
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class RegisteredTool:
    """A tool definition paired with the builder for its typed arguments.

    ``build_args`` receives the schema-validated argument object.
    """

    definition: ToolDefinition
    build_args: Callable[[dict[str, Any]], ParsedArgs]


class ToolRegistry:
    """Closed set of tools the dispatcher can resolve.

    Latest-wins on name collision. Insertion-order stable.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, tool: RegisteredTool) -> None:
        """Register a tool. Overwrites any existing tool with the same name."""
        self._tools[tool.definition.name] = tool

    def get(self, name: str) -> RegisteredTool | None:
        """Look up a registered tool by name."""
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        """Return all tool definitions in registration order."""
        return [t.definition for t in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools
