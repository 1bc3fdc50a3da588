"""Domain enumerations for agent-tool-bench.

These enums capture the fixed vocabularies used across the domain layer:
agent variants, per-step finish reasons, loop lifecycle states, shell tool
subsets, and the tags of the cross-process message protocol.
"""

from enum import Enum


class AgentType(Enum):
    """The four tool-access strategies under benchmark."""

    BASH = "bash"
    FS = "fs"
    SQL = "sql"
    EMBEDDING = "embedding"


class FinishReason(Enum):
    """Why a single model step ended."""

    STOP = "stop"  # concluded with text
    TOOL_CALLS = "tool-calls"  # still mid-tool-use
    LENGTH = "length"  # output token limit
    OTHER = "other"


class LoopStatus(Enum):
    """Finite-state-machine states for one agent loop invocation."""

    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_EXECUTING = "tool_executing"
    FINISHED = "finished"
    STEP_LIMIT_EXCEEDED = "step_limit_exceeded"
    FAILED = "failed"


class ShellToolSet(Enum):
    """Preset command subsets for the shell sandbox."""

    ALL = "all"
    CORE_ONLY = "core-only"
    CORE_PLUS_READ = "core-plus-read"


class MessageType(Enum):
    """Tags of the messages a worker process sends to its parent."""

    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"
