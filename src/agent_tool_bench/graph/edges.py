"""Conditional edge functions for the agent loop graph.

Routing reads only the loop status, the explicit ``finish_reason`` enum and
the step counter; it never inspects message text.
"""

from __future__ import annotations

from typing import Any, Literal

from agent_tool_bench.domain.enums import FinishReason, LoopStatus


def route_after_model(state: dict[str, Any]) -> Literal["tools", "__end__"]:
    """Run tools when the step asked for them, otherwise finish.

    A step that ends with text finishes successfully even when it is the
    last step of the budget.  A failed model call ends the loop.
    """
    if state.get("status") == LoopStatus.FAILED:
        return "__end__"
    if state.get("finish_reason") == FinishReason.TOOL_CALLS:
        return "tools"
    return "__end__"


def route_after_tools(state: dict[str, Any]) -> Literal["model", "step_limit"]:
    """Loop back to the model unless the step budget is spent.

    Reaching this edge means the step just executed ended in tool calls, so
    an exhausted budget here is a step-limit failure.
    """
    if state.get("step_count", 0) >= state.get("max_steps", 0):
        return "step_limit"
    return "model"
