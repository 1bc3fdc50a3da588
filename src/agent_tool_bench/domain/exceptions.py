"""Domain exceptions for agent-tool-bench.

All domain-specific exceptions inherit from ``AgentToolBenchError`` so
callers can catch the full family with a single ``except`` clause when needed.

Tool-level errors (``ToolExecutionError`` and subclasses) never escape the
agent loop: the tool registry turns them into ``Error: ...`` results that the
model can react to.  Step-limit and worker errors are fatal to one invocation
and surface to the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class AgentToolBenchError(Exception):
    """Base exception for all agent-tool-bench errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


# ---------------------------------------------------------------------------
# Tool execution (non-fatal, reported back to the model)
# ---------------------------------------------------------------------------


class ToolExecutionError(AgentToolBenchError):
    """Raised by a tool adapter when a single call cannot be completed."""

    def __init__(
        self,
        message: str = "Tool execution failed",
        tool_name: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.tool_name = tool_name


class PathEscapeError(ToolExecutionError):
    """Raised when a path resolves outside the corpus root."""

    def __init__(self, path: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Path escape attempt blocked: {path!r}", details=details)
        self.path = path


class QueryRejectedError(ToolExecutionError):
    """Raised when a SQL statement or identifier fails the read-only whitelist."""


class CommandNotAllowedError(ToolExecutionError):
    """Raised when the shell sandbox is asked to run a non-whitelisted command."""

    def __init__(self, command: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(f"{command}: command not found", details=details)
        self.command = command


class ExecutionLimitError(ToolExecutionError):
    """Raised when a shell script exceeds a call-depth, loop or command ceiling."""

    def __init__(
        self,
        limit_name: str = "",
        limit: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Execution limit exceeded: {limit_name} (max {limit})", details=details
        )
        self.limit_name = limit_name
        self.limit = limit


class CommandTimeoutError(ToolExecutionError):
    """Raised when a single tool call exceeds its time budget."""

    def __init__(self, timeout_ms: int = 0, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Command timed out after {timeout_ms}ms", details=details)
        self.timeout_ms = timeout_ms


# ---------------------------------------------------------------------------
# Invocation-level failures (fatal to one run)
# ---------------------------------------------------------------------------


class StepLimitExceededError(AgentToolBenchError):
    """Raised when the loop exhausts its step budget while still calling tools."""

    def __init__(
        self,
        max_steps: int = 0,
        message: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message
            or f"Agent reached maximum {max_steps} steps without producing a final answer",
            details,
        )
        self.max_steps = max_steps


class WorkerError(AgentToolBenchError):
    """Raised when an isolated worker process fails or exits without a result."""

    def __init__(
        self,
        message: str = "Worker failed",
        agent_type: str = "",
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.agent_type = agent_type
        self.exit_code = exit_code


class CorpusConfigurationError(AgentToolBenchError):
    """Raised when a corpus artifact is missing or internally inconsistent."""
