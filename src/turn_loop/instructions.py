"""Instruction merging with layered priority."""

from __future__ import annotations

import subprocess
from pathlib import Path

PROJECT_DOC_BUDGET_BYTES = 32 * 1024  # 32KB
PROJECT_DOC_SEPARATOR = "\n\n--- project-doc ---\n\n"
PROJECT_DOC_NAMES = ("AGENTS.md", "codex.md", ".codex.md")

BASE_INSTRUCTIONS = """\
You are operating as a coding agent in the user's terminal. You can run \
commands with the `shell` tool; its output comes back as JSON with `output` \
and `metadata` fields. Keep going until the user's request is resolved \
before ending your turn."""


def discover_project_docs(working_dir: str) -> list[str]:
    """Find and load project instruction files.

    Walks from the git root (or working dir) down to the working dir. At most
    one file per directory is loaded, root first. Total budget: 32KB,
    truncated with a marker when exceeded.
    """
    root_path = Path(_find_git_root(working_dir) or working_dir)
    work_path = Path(working_dir)

    search_dirs = [root_path]
    try:
        current = root_path
        for part in work_path.relative_to(root_path).parts:
            current = current / part
            search_dirs.append(current)
    except ValueError:
        pass

    docs: list[str] = []
    total_bytes = 0
    for directory in search_dirs:
        for name in PROJECT_DOC_NAMES:
            candidate = directory / name
            if not candidate.is_file():
                continue
            try:
                content = candidate.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            size = len(content.encode("utf-8"))
            if total_bytes + size > PROJECT_DOC_BUDGET_BYTES:
                remaining = PROJECT_DOC_BUDGET_BYTES - total_bytes
                if remaining > 0:
                    docs.append(content[:remaining] + "\n[Project instructions truncated at 32KB]")
                return docs
            docs.append(content)
            total_bytes += size
            break
    return docs


def _find_git_root(working_dir: str) -> str | None:
    """Find the git repository root, or None if not in a git repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True, text=True, cwd=working_dir, timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (FileNotFoundError, NotADirectoryError, subprocess.TimeoutExpired):
        pass
    return None


def merge_instructions(
    base_instructions: str = BASE_INSTRUCTIONS,
    user_instructions: str | None = None,
    project_docs: list[str] | None = None,
) -> str:
    """Assemble session instructions.

    Layer order (lowest to highest priority):
    1. base_instructions
    2. user_instructions
    3. project docs, joined behind a ``--- project-doc ---`` separator
    """
    layers = [layer.strip() for layer in (base_instructions, user_instructions) if layer and layer.strip()]
    merged = "\n\n".join(layers)
    docs = [d.strip() for d in project_docs or [] if d.strip()]
    if docs:
        merged = merged + PROJECT_DOC_SEPARATOR + "\n\n".join(docs) if merged else "\n\n".join(docs)
    return merged
