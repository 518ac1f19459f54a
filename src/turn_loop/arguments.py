"""Argument parser: decodes untrusted tool-call arguments into typed values."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from turn_loop.errors import MalformedArguments, UnknownTool

if TYPE_CHECKING:
    from turn_loop.tools.registry import ToolRegistry


@dataclass(frozen=True)
class ExecArgs:
    """Arguments for command-execution tools (``shell``, ``container.exec``)."""

    command: tuple[str, ...]
    workdir: str | None = None
    timeout_ms: int | None = None


# Every registered tool currently decodes to ExecArgs.
ParsedArgs = ExecArgs


_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def decode_arguments(raw: bytes | str | None) -> dict[str, Any]:
    """Decode a raw payload into a JSON object.

    Undecodable bytes, invalid JSON and non-object values all raise
    MalformedArguments.
    """
    if raw is None:
        raise MalformedArguments("arguments are missing")
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedArguments(f"arguments are not valid UTF-8: {e}") from e
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedArguments(f"arguments are not valid JSON: {e.msg}") from e
    if not isinstance(value, dict):
        raise MalformedArguments(f"arguments must be a JSON object, got {type(value).__name__}")
    return value


def _matches_type(value: Any, expected: str) -> bool:
    types = _JSON_TYPES.get(expected)
    if types is None:
        return True
    # bool is an int subclass; JSON keeps them apart
    if isinstance(value, bool) and expected in ("integer", "number"):
        return False
    return isinstance(value, types)


def validate_arguments(arguments: dict[str, Any], schema: dict[str, Any]) -> None:
    """Check *arguments* against a tool's JSON-schema parameters.

    Only declared properties are checked; unknown fields are ignored.
    """
    for name in schema.get("required", []):
        if arguments.get(name) is None:
            raise MalformedArguments(f"missing required field '{name}'")

    for name, prop in schema.get("properties", {}).items():
        if name not in arguments or arguments[name] is None:
            continue
        value = arguments[name]
        expected = prop.get("type")
        if expected and not _matches_type(value, expected):
            raise MalformedArguments(f"field '{name}' must be of type {expected}")
        item_type = prop.get("items", {}).get("type")
        if expected == "array" and item_type:
            for index, element in enumerate(value):
                if not _matches_type(element, item_type):
                    raise MalformedArguments(
                        f"field '{name}[{index}]' must be of type {item_type}"
                    )


def build_exec_args(arguments: dict[str, Any]) -> ExecArgs:
    """Build ExecArgs from an already schema-validated object."""
    command = tuple(arguments["command"])
    if not command:
        raise MalformedArguments("field 'command' must not be empty")
    timeout_ms = arguments.get("timeout_ms")
    if timeout_ms is not None and timeout_ms <= 0:
        raise MalformedArguments("field 'timeout_ms' must be positive")
    return ExecArgs(command=command, workdir=arguments.get("workdir"), timeout_ms=timeout_ms)


def parse(
    raw: bytes | str | None,
    schema_name: str,
    registry: ToolRegistry | None = None,
) -> ParsedArgs:
    """Decode *raw* against the parameter schema of tool *schema_name*.

    Pure: the same input always yields an equal result. Raises UnknownTool when
    the tool is not registered and MalformedArguments for any decode or
    validation failure.
    """
    if registry is None:
        from turn_loop.tools.core import default_registry

        registry = default_registry()

    tool = registry.get(schema_name)
    if tool is None:
        raise UnknownTool(schema_name)

    try:
        arguments = decode_arguments(raw)
        validate_arguments(arguments, tool.definition.parameters)
        return tool.build_args(arguments)
    except MalformedArguments as e:
        e.tool_name = schema_name
        raise
