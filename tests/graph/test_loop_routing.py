"""Tests for the loop's edge functions and message helpers."""

from __future__ import annotations

from langchain_core.messages import AIMessage, AIMessageChunk

from agent_tool_bench.domain.enums import FinishReason, LoopStatus
from agent_tool_bench.graph.edges import route_after_model, route_after_tools
from agent_tool_bench.graph.graph import recursion_limit_for
from agent_tool_bench.graph.nodes import chunk_text, finish_reason_of, pending_calls


class TestRouteAfterModel:

    def test_tools_on_tool_calls(self) -> None:
        assert route_after_model({"finish_reason": FinishReason.TOOL_CALLS}) == "tools"

    def test_end_on_stop(self) -> None:
        assert route_after_model({"finish_reason": FinishReason.STOP}) == "__end__"

    def test_end_on_length(self) -> None:
        assert route_after_model({"finish_reason": FinishReason.LENGTH}) == "__end__"

    def test_end_when_missing(self) -> None:
        assert route_after_model({}) == "__end__"

    def test_end_on_failure_after_tool_calls(self) -> None:
        state = {"status": LoopStatus.FAILED, "finish_reason": FinishReason.TOOL_CALLS}
        assert route_after_model(state) == "__end__"


class TestRouteAfterTools:

    def test_model_while_budget_left(self) -> None:
        assert route_after_tools({"step_count": 1, "max_steps": 3}) == "model"

    def test_step_limit_when_spent(self) -> None:
        assert route_after_tools({"step_count": 3, "max_steps": 3}) == "step_limit"

    def test_recursion_limit_covers_budget(self) -> None:
        # two super-steps (model + tools) per budgeted step, plus the tail
        assert recursion_limit_for(50) == 105
        assert recursion_limit_for(1) > 2


class TestFinishReason:

    def test_tool_calls(self) -> None:
        msg = AIMessage(
            content="",
            tool_calls=[{"name": "tables", "args": {}, "id": "c1", "type": "tool_call"}],
        )
        assert finish_reason_of(msg) == FinishReason.TOOL_CALLS

    def test_plain_text_is_stop(self) -> None:
        assert finish_reason_of(AIMessage(content="done")) == FinishReason.STOP

    def test_anthropic_end_turn(self) -> None:
        msg = AIMessage(content="x", response_metadata={"stop_reason": "end_turn"})
        assert finish_reason_of(msg) == FinishReason.STOP

    def test_length(self) -> None:
        msg = AIMessage(content="x", response_metadata={"finish_reason": "length"})
        assert finish_reason_of(msg) == FinishReason.LENGTH
        msg = AIMessage(content="x", response_metadata={"stop_reason": "max_tokens"})
        assert finish_reason_of(msg) == FinishReason.LENGTH

    def test_other(self) -> None:
        msg = AIMessage(content="x", response_metadata={"finish_reason": "content_filter"})
        assert finish_reason_of(msg) == FinishReason.OTHER


class TestChunkText:

    def test_string_content(self) -> None:
        assert chunk_text(AIMessageChunk(content="abc")) == "abc"

    def test_content_blocks(self) -> None:
        chunk = AIMessageChunk(
            content=[
                {"type": "text", "text": "Hello ", "index": 0},
                {"type": "tool_use", "id": "t1", "name": "x", "input": {}, "index": 1},
                {"type": "text", "text": "world", "index": 2},
            ]
        )
        assert chunk_text(chunk) == "Hello world"


class TestPendingCalls:

    def test_order_preserved(self) -> None:
        msg = AIMessage(
            content="",
            tool_calls=[
                {"name": "a", "args": {"x": 1}, "id": "c1", "type": "tool_call"},
                {"name": "b", "args": {}, "id": "c2", "type": "tool_call"},
            ],
        )
        assert [(c["name"], c["id"], c["args"]) for c in pending_calls(msg)] == [
            ("a", "c1", {"x": 1}),
            ("b", "c2", {}),
        ]

    def test_invalid_calls_kept_with_error(self) -> None:
        msg = AIMessage(
            content="",
            invalid_tool_calls=[
                {
                    "name": "query",
                    "args": "{broken",
                    "id": "c9",
                    "error": "bad json",
                    "type": "invalid_tool_call",
                }
            ],
        )
        assert finish_reason_of(msg) == FinishReason.TOOL_CALLS
        (call,) = pending_calls(msg)
        assert call["name"] == "query"
        assert call["error"] == "invalid tool arguments: bad json"
