"""Tests for ConversationState and LoopConfig."""

from turn_loop.config import LoopConfig, LoopState
from turn_loop.gateway.types import ApprovalPolicy
from turn_loop.state import ConversationState


class TestConversationState:
    def test_starts_without_token(self):
        assert ConversationState(model="o4-mini").previous_response_id is None

    def test_advance(self):
        state = ConversationState(model="o4-mini").advance("resp_1")
        assert state.previous_response_id == "resp_1"
        assert state.model == "o4-mini"

    def test_advance_without_id_keeps_token(self):
        state = ConversationState(model="o4-mini", previous_response_id="resp_1")
        assert state.advance(None) is state
        assert state.advance("") is state

    def test_reset(self):
        state = ConversationState(model="o4-mini", previous_response_id="resp_1")
        assert state.reset().previous_response_id is None


class TestLoopConfig:
    def test_defaults(self):
        config = LoopConfig()
        assert config.approval_policy == ApprovalPolicy.SUGGEST
        assert config.parallel_tool_calls is False
        assert config.max_auto_turns == 50
        assert config.retry_policy.max_retries == 3

    def test_loop_states(self):
        assert {s.value for s in LoopState} == {
            "awaiting_input", "requesting", "streaming", "resolving", "ended",
        }
