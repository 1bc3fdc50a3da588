"""Build the agent loop StateGraph.

``build_agent_graph()`` wires the model, tools and step-limit nodes with
their conditional edges into a compiled LangGraph::

    START -> model -(tool-calls)-> tools -(budget left)-> model
                   -(otherwise)--> END    -(budget spent)-> step_limit -> END
"""

from typing import Any

from langchain_core.language_models import BaseChatModel
from langgraph.graph import END, START, StateGraph

from agent_tool_bench.graph.edges import route_after_model, route_after_tools
from agent_tool_bench.graph.nodes import make_model_node, make_tools_node, step_limit_node
from agent_tool_bench.graph.state import AgentRunState
from agent_tool_bench.infrastructure.event_bus import EventBus
from agent_tool_bench.tools.base import ToolRegistry


def build_agent_graph(
    model: BaseChatModel,
    registry: ToolRegistry,
    bus: EventBus | None = None,
    result_preview_chars: int = 500,
    checkpointer: Any | None = None,
) -> Any:
    """Build and compile the agent loop graph.

    Parameters
    ----------
    model:
        Chat model supporting ``bind_tools`` and ``stream``.
    registry:
        Tools bound for this invocation.
    bus:
        Receives stream events as they happen.  A private bus is created
        when omitted.
    result_preview_chars:
        Length of tool-result previews in ``tool-result`` events.
    checkpointer:
        Optional LangGraph checkpointer for persistence.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.invoke()``.
    """
    bus = bus if bus is not None else EventBus()
    graph = StateGraph(AgentRunState)

    graph.add_node("model", make_model_node(model, registry, bus))
    graph.add_node("tools", make_tools_node(registry, bus, result_preview_chars))
    graph.add_node("step_limit", step_limit_node)

    graph.add_edge(START, "model")
    graph.add_conditional_edges("model", route_after_model, {"tools": "tools", "__end__": END})
    graph.add_conditional_edges(
        "tools", route_after_tools, {"model": "model", "step_limit": "step_limit"}
    )
    graph.add_edge("step_limit", END)

    return graph.compile(checkpointer=checkpointer)


def recursion_limit_for(max_steps: int) -> int:
    """LangGraph super-step limit that never cuts a budgeted run short."""
    return 2 * max_steps + 5
