"""LangGraph wiring of the agent tool loop."""

from agent_tool_bench.graph.edges import route_after_model, route_after_tools
from agent_tool_bench.graph.graph import build_agent_graph, recursion_limit_for
from agent_tool_bench.graph.nodes import (
    chunk_text,
    finish_reason_of,
    make_model_node,
    make_tools_node,
    step_limit_node,
)
from agent_tool_bench.graph.state import AgentRunState

__all__ = [
    "AgentRunState",
    "build_agent_graph",
    "chunk_text",
    "finish_reason_of",
    "make_model_node",
    "make_tools_node",
    "recursion_limit_for",
    "route_after_model",
    "route_after_tools",
    "step_limit_node",
]
