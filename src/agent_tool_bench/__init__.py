"""agent-tool-bench.

Benchmarks four tool-access strategies for an LLM agent answering questions
over a corpus of GitHub activity: a sandboxed shell, structured filesystem
calls, read-only SQL and embedding search.
"""

__version__ = "0.1.0"

from agent_tool_bench.agents import run_agent, run_agent_in_worker, run_agent_type
from agent_tool_bench.domain import AgentResult, AgentType, Question, ScoreResult

__all__ = [
    "AgentResult",
    "AgentType",
    "Question",
    "ScoreResult",
    "run_agent",
    "run_agent_in_worker",
    "run_agent_type",
]
