"""Run one agent invocation in the current process.

``run_agent()`` drives a compiled loop graph for a question over one tool
adapter and returns the :class:`AgentResult`.  ``run_agent_type()`` is the
variant-level entry point used by the worker and by in-process callers: it
resolves the model, builds the variant's adapter from the configuration
and always closes it.

Example::

    result = run_agent_type("sql", "How many open issues are there?")
    print(result.answer)
"""

from __future__ import annotations

import logging
import time
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from agent_tool_bench.agents.variants import DEFAULT_MAX_STEPS, get_variant
from agent_tool_bench.domain.enums import AgentType, LoopStatus
from agent_tool_bench.domain.exceptions import StepLimitExceededError
from agent_tool_bench.domain.values import AgentResult
from agent_tool_bench.graph.graph import build_agent_graph, recursion_limit_for
from agent_tool_bench.infrastructure.config import BenchConfig, LoopConfig
from agent_tool_bench.infrastructure.event_bus import EventBus, StreamCallbacks
from agent_tool_bench.infrastructure.models import create_chat_model, get_model_from_env
from agent_tool_bench.tools.base import ToolAdapter

logger = logging.getLogger(__name__)


def initial_state(question: str, system_prompt: str, max_steps: int) -> dict[str, Any]:
    """Fresh ``AgentRunState`` for one invocation."""
    return {
        "step_count": 0,
        "max_steps": max_steps,
        "status": LoopStatus.IDLE,
        "error": None,
        "finish_reason": None,
        "step_tokens": 0,
        "accumulated_text": "",
        "tool_call_count": 0,
        "token_count": 0,
        "messages": [SystemMessage(content=system_prompt), HumanMessage(content=question)],
        "metadata": {},
    }


def run_agent(
    question: str,
    adapter: ToolAdapter,
    model: BaseChatModel,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
    callbacks: StreamCallbacks | None = None,
    loop_config: LoopConfig | None = None,
    bus: EventBus | None = None,
) -> AgentResult:
    """Answer *question* with the tools of *adapter*.

    Raises
    ------
    StepLimitExceededError
        If the budget ran out while the model was still calling tools.
    Exception
        Any model failure propagates unchanged.
    """
    loop_config = loop_config or LoopConfig()
    if max_steps < 1:
        raise ValueError(f"max_steps must be >= 1, got {max_steps}")

    bus = bus if bus is not None else EventBus()
    bus.attach(callbacks)
    app = build_agent_graph(
        model,
        adapter.registry(),
        bus=bus,
        result_preview_chars=loop_config.result_preview_chars,
    )

    logger.info("run_agent: %s agent, budget %d steps", adapter.agent_type.value, max_steps)
    started = time.perf_counter()
    final = app.invoke(
        initial_state(question, adapter.system_prompt(), max_steps),
        config={"recursion_limit": recursion_limit_for(max_steps)},
    )
    latency_ms = int((time.perf_counter() - started) * 1000)

    if final.get("status") == LoopStatus.FAILED:
        raise final["error"]
    if final.get("status") == LoopStatus.STEP_LIMIT_EXCEEDED:
        raise StepLimitExceededError(
            max_steps,
            details={
                "tool_calls": final.get("tool_call_count", 0),
                "tokens": final.get("token_count", 0),
            },
        )

    result = AgentResult(
        answer=final.get("accumulated_text", ""),
        latency_ms=latency_ms,
        tokens=final.get("token_count", 0),
        tool_calls=final.get("tool_call_count", 0),
    )
    logger.info(
        "run_agent: finished in %d steps, %d tool calls, %d tokens, %dms",
        final.get("step_count", 0),
        result.tool_calls,
        result.tokens,
        result.latency_ms,
    )
    return result


def run_agent_type(
    agent_type: AgentType | str,
    question: str,
    callbacks: StreamCallbacks | None = None,
    *,
    config: BenchConfig | None = None,
    model: BaseChatModel | None = None,
    model_id: str | None = None,
    **adapter_overrides: Any,
) -> AgentResult:
    """Run the registered variant *agent_type* on *question*.

    Parameters
    ----------
    config:
        Defaults to :meth:`BenchConfig.from_env`.
    model:
        A ready chat model; when omitted one is created from *model_id*,
        then ``config.model``, then the default id.
    adapter_overrides:
        Extra keyword arguments for the variant's adapter factory.
    """
    config = config or BenchConfig.from_env()
    variant = get_variant(agent_type)
    if model is None:
        model = create_chat_model(model_id or get_model_from_env({"MODEL": config.model}))

    adapter = variant.build_adapter(config, **adapter_overrides)
    try:
        return run_agent(
            question,
            adapter,
            model,
            max_steps=variant.max_steps(config),
            callbacks=callbacks,
            loop_config=config.loop,
        )
    finally:
        adapter.close()
