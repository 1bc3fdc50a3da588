"""Public testing utilities for agent-tool-bench.

Provides mock chat models for writing self-contained tests and offline
runs without requiring API keys.
"""

from agent_tool_bench.testing.mock_llm import (
    MockStructuredChatModel,
    ScriptedChatModel,
    ai_text,
    ai_tool_calls,
)

__all__ = ["MockStructuredChatModel", "ScriptedChatModel", "ai_text", "ai_tool_calls"]
