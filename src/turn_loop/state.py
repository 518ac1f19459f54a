"""Conversation state owned by the controller."""

from __future__ import annotations

from dataclasses import dataclass, replace

from turn_loop.reasoning import ReasoningConfig


@dataclass(frozen=True)
class ConversationState:
    """Session-scoped conversation settings plus the continuation token.

    ``previous_response_id`` is None until the first turn completes; after
    that the remote service reconstructs earlier context from it.
    """

    model: str
    instructions: str = ""
    reasoning: ReasoningConfig | None = None
    previous_response_id: str | None = None

    def advance(self, response_id: str | None) -> ConversationState:
        """Return the state for the next turn. A missing id keeps the current token."""
        if not response_id or response_id == self.previous_response_id:
            return self
        return replace(self, previous_response_id=response_id)

    def reset(self) -> ConversationState:
        """Forget server-side history; the next turn starts fresh."""
        return replace(self, previous_response_id=None)
