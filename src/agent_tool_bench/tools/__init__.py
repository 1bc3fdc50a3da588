"""Tool adapters: the four capability sets an agent can be given."""

from agent_tool_bench.tools.base import (
    ToolAdapter,
    ToolCapability,
    ToolRegistry,
    format_error,
    truncate_output,
)
from agent_tool_bench.tools.embedding import EmbeddingToolAdapter, cosine_similarity
from agent_tool_bench.tools.filesystem import FilesystemToolAdapter
from agent_tool_bench.tools.shell import ShellToolAdapter
from agent_tool_bench.tools.sql import SqlToolAdapter

__all__ = [
    "EmbeddingToolAdapter",
    "FilesystemToolAdapter",
    "ShellToolAdapter",
    "SqlToolAdapter",
    "ToolAdapter",
    "ToolCapability",
    "ToolRegistry",
    "cosine_similarity",
    "format_error",
    "truncate_output",
]
