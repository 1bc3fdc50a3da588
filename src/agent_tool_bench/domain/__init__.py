"""Domain layer: enums, value objects, stream events and exceptions."""

from agent_tool_bench.domain.enums import (
    AgentType,
    FinishReason,
    LoopStatus,
    MessageType,
    ShellToolSet,
)
from agent_tool_bench.domain.events import (
    ErrorEvent,
    FinishStepEvent,
    StreamEvent,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from agent_tool_bench.domain.exceptions import (
    AgentToolBenchError,
    CommandNotAllowedError,
    CommandTimeoutError,
    CorpusConfigurationError,
    ExecutionLimitError,
    PathEscapeError,
    QueryRejectedError,
    StepLimitExceededError,
    ToolExecutionError,
    WorkerError,
)
from agent_tool_bench.domain.values import AgentResult, ProgressUpdate, Question, ScoreResult

__all__ = [
    # Enums
    "AgentType",
    "FinishReason",
    "LoopStatus",
    "MessageType",
    "ShellToolSet",
    # Events
    "StreamEvent",
    "TextDelta",
    "ToolCallEvent",
    "ToolResultEvent",
    "FinishStepEvent",
    "ErrorEvent",
    # Values
    "Question",
    "AgentResult",
    "ProgressUpdate",
    "ScoreResult",
    # Exceptions
    "AgentToolBenchError",
    "ToolExecutionError",
    "PathEscapeError",
    "QueryRejectedError",
    "CommandNotAllowedError",
    "ExecutionLimitError",
    "CommandTimeoutError",
    "StepLimitExceededError",
    "WorkerError",
    "CorpusConfigurationError",
]
