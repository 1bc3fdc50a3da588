"""Agent variants, the in-process loop runner and process isolation."""

from agent_tool_bench.agents.isolation import run_agent_in_worker
from agent_tool_bench.agents.loop import run_agent, run_agent_type
from agent_tool_bench.agents.variants import (
    AgentVariant,
    get_variant,
    list_variants,
    register_variant,
)

__all__ = [
    "AgentVariant",
    "get_variant",
    "list_variants",
    "register_variant",
    "run_agent",
    "run_agent_in_worker",
    "run_agent_type",
]
