"""Command output truncation: characters first, then lines."""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_CHARS = 30_000
DEFAULT_MAX_LINES = 256


@dataclass(frozen=True)
class TruncatedOutput:
    text: str
    truncated: bool = False


def truncate_chars(output: str, max_chars: int) -> str:
    """Keep the first and last half of *max_chars*, with a marker in between.

    Returns the original if within limits.
    """
    if len(output) <= max_chars:
        return output
    removed = len(output) - max_chars
    half = max_chars // 2
    marker = f"\n\n[... {removed} characters truncated ...]\n\n"
    return output[:half] + marker + output[-half:]


def truncate_lines(output: str, max_lines: int) -> str:
    """Line-based truncation using head/tail strategy.

    Keeps first half and last half of lines with an omission marker.
    Returns original if within limits.
    """
    lines = output.split("\n")
    if len(lines) <= max_lines:
        return output

    head_count = max_lines // 2
    tail_count = max_lines - head_count
    omitted = len(lines) - head_count - tail_count

    head = "\n".join(lines[:head_count])
    tail = "\n".join(lines[-tail_count:])
    return head + f"\n[... {omitted} lines omitted ...]\n" + tail


def truncate_command_output(
    output: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    max_lines: int | None = DEFAULT_MAX_LINES,
) -> TruncatedOutput:
    """Two-stage truncation pipeline: chars first, then lines.

    Character truncation must run first to handle single lines with millions
    of characters.
    """
    result = truncate_chars(output, max_chars)
    if max_lines is not None:
        result = truncate_lines(result, max_lines)
    return TruncatedOutput(text=result, truncated=result != output)
