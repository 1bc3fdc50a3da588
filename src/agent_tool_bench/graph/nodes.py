"""Node functions for the agent loop graph.

Each node is built by a ``make_*_node`` factory that closes over its
collaborators (model, tool registry, event bus), takes the current
``AgentRunState`` and returns a partial state update.  Stream events are
published from inside the nodes, in the order they happen.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    BaseMessageChunk,
    ToolMessage,
    message_chunk_to_message,
)

from agent_tool_bench.domain.enums import FinishReason, LoopStatus
from agent_tool_bench.domain.events import (
    ErrorEvent,
    FinishStepEvent,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from agent_tool_bench.infrastructure.event_bus import EventBus
from agent_tool_bench.tools.base import ERROR_PREFIX, ToolRegistry

logger = logging.getLogger(__name__)

Node = Callable[[dict[str, Any]], dict[str, Any]]

_LENGTH_REASONS = frozenset({"length", "max_tokens"})
_STOP_REASONS = frozenset({"stop", "end_turn", "stop_sequence"})


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def chunk_text(message: BaseMessage) -> str:
    """Visible text of a message or chunk.

    Content is either a string or a list of content blocks (Anthropic);
    only ``text`` blocks count.
    """
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type", "text") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def usage_tokens(message: AIMessage) -> int:
    usage = message.usage_metadata or {}
    return int(usage.get("total_tokens", 0) or 0)


def finish_reason_of(message: AIMessage) -> FinishReason:
    """Map a completed model message to the loop's finish-reason enum."""
    if message.tool_calls or message.invalid_tool_calls:
        return FinishReason.TOOL_CALLS
    meta = message.response_metadata or {}
    raw = meta.get("finish_reason") or meta.get("stop_reason")
    if raw is None or raw in _STOP_REASONS:
        return FinishReason.STOP
    if raw in _LENGTH_REASONS:
        return FinishReason.LENGTH
    return FinishReason.OTHER


def pending_calls(message: AIMessage) -> list[dict[str, Any]]:
    """Tool calls of *message* in request order.

    Calls whose arguments failed to parse are kept with an ``error`` entry
    so every requested call still gets a result.
    """
    calls = [
        {"id": c.get("id") or "", "name": c["name"], "args": dict(c.get("args") or {})}
        for c in message.tool_calls
    ]
    for bad in message.invalid_tool_calls:
        calls.append(
            {
                "id": bad.get("id") or "",
                "name": bad.get("name") or "",
                "args": {},
                "error": f"invalid tool arguments: {bad.get('error') or bad.get('args')}",
            }
        )
    return calls


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------


def make_model_node(model: BaseChatModel, registry: ToolRegistry, bus: EventBus) -> Node:
    """Create the node that streams one model step.

    Text deltas are published as they arrive; tool calls are published once
    the step's message is complete.  A step that ends without tool calls
    publishes its ``finish-step`` here; otherwise the tools node does, after
    the results.  A model failure publishes an ``error`` event and ends the
    loop in ``LoopStatus.FAILED`` with the exception kept in ``error``.
    """
    bound = model.bind_tools(registry.as_tools()) if len(registry) else model

    def model_node(state: dict[str, Any]) -> dict[str, Any]:
        step = state.get("step_count", 0) + 1
        tool_call_count = state.get("tool_call_count", 0)
        token_count = state.get("token_count", 0)

        aggregate: BaseMessageChunk | None = None
        texts: list[str] = []
        try:
            for chunk in bound.stream(state["messages"]):
                text = chunk_text(chunk)
                if text:
                    texts.append(text)
                    bus.publish(TextDelta(step=step, text=text))
                aggregate = chunk if aggregate is None else aggregate + chunk
        except Exception as exc:
            logger.error("model_node: step %d failed: %s", step, exc)
            bus.publish(ErrorEvent(step=step, error=str(exc)))
            return {"step_count": step, "status": LoopStatus.FAILED, "error": exc}

        message = message_chunk_to_message(aggregate) if aggregate is not None else AIMessage(content="")
        if not isinstance(message, AIMessage):
            message = AIMessage(content=message.content)

        for call in pending_calls(message):
            tool_call_count += 1
            bus.publish(
                ToolCallEvent(step=step, tool_name=call["name"], call_id=call["id"], args=call["args"])
            )

        step_tokens = usage_tokens(message)
        token_count += step_tokens
        reason = finish_reason_of(message)
        logger.debug(
            "model_node: step=%d finish=%s tokens=%d tool_calls=%d",
            step,
            reason.value,
            step_tokens,
            tool_call_count,
        )

        update: dict[str, Any] = {
            "messages": [message],
            "step_count": step,
            "finish_reason": reason,
            "step_tokens": step_tokens,
            "token_count": token_count,
            "tool_call_count": tool_call_count,
            "accumulated_text": state.get("accumulated_text", "") + "".join(texts),
        }
        if reason == FinishReason.TOOL_CALLS:
            update["status"] = LoopStatus.TOOL_EXECUTING
        else:
            bus.publish(
                FinishStepEvent(
                    step=step,
                    finish_reason=reason,
                    step_tokens=step_tokens,
                    total_tokens=token_count,
                    tool_calls=tool_call_count,
                )
            )
            update["status"] = LoopStatus.FINISHED
        return update

    return model_node


def make_tools_node(registry: ToolRegistry, bus: EventBus, result_preview_chars: int = 500) -> Node:
    """Create the node that executes the last step's tool calls.

    Calls run sequentially in request order.  Each result is fed back as a
    ``ToolMessage``; the sink sees a preview capped at
    *result_preview_chars*.
    """

    def tools_node(state: dict[str, Any]) -> dict[str, Any]:
        step = state.get("step_count", 0)
        last = state["messages"][-1]
        results: list[ToolMessage] = []

        for call in pending_calls(last):
            if "error" in call:
                output = f"{ERROR_PREFIX}{call['error']}"
            else:
                output = registry.execute(call["name"], call["args"])
            bus.publish(
                ToolResultEvent(
                    step=step,
                    tool_name=call["name"],
                    call_id=call["id"],
                    result=output[:result_preview_chars],
                )
            )
            results.append(ToolMessage(content=output, tool_call_id=call["id"], name=call["name"]))
            logger.debug(
                "tools_node: %s(%s) -> %d chars",
                call["name"],
                json.dumps(call["args"], default=str)[:200],
                len(output),
            )

        bus.publish(
            FinishStepEvent(
                step=step,
                finish_reason=FinishReason.TOOL_CALLS,
                step_tokens=state.get("step_tokens", 0),
                total_tokens=state.get("token_count", 0),
                tool_calls=state.get("tool_call_count", 0),
            )
        )
        return {"messages": results, "status": LoopStatus.STREAMING}

    return tools_node


def step_limit_node(state: dict[str, Any]) -> dict[str, Any]:
    """Terminal node reached when the budget runs out mid-tool-use."""
    logger.info(
        "step_limit_node: budget of %d steps exhausted with pending tool use",
        state.get("max_steps", 0),
    )
    return {"status": LoopStatus.STEP_LIMIT_EXCEEDED}
