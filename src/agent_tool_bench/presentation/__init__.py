"""Console presentation for the debug and eval commands."""

from agent_tool_bench.presentation.console import DebugConsole, SummaryConsole

__all__ = ["DebugConsole", "SummaryConsole"]
