"""Stream events emitted while an agent loop runs.

Every event is a frozen dataclass inheriting from ``StreamEvent``.  Events
are produced by the loop nodes, consumed once by a sink, and never retained:
the closed set of subclasses forms the tagged union
``text-delta | tool-call | tool-result | finish-step | error``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .enums import FinishReason

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamEvent:
    """Base class for all stream events."""

    kind: ClassVar[str] = "event"

    step: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TextDelta(StreamEvent):
    """A chunk of model text."""

    kind: ClassVar[str] = "text-delta"

    text: str = ""


@dataclass(frozen=True)
class ToolCallEvent(StreamEvent):
    """The model requested a tool call."""

    kind: ClassVar[str] = "tool-call"

    tool_name: str = ""
    call_id: str = ""
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultEvent(StreamEvent):
    """A tool call finished.

    ``result`` is a preview of the text fed back to the model, capped at
    ``LoopConfig.result_preview_chars``.
    """

    kind: ClassVar[str] = "tool-result"

    tool_name: str = ""
    call_id: str = ""
    result: str = ""


@dataclass(frozen=True)
class FinishStepEvent(StreamEvent):
    """A model step ended, after every other event of that step."""

    kind: ClassVar[str] = "finish-step"

    finish_reason: FinishReason = FinishReason.STOP
    step_tokens: int = 0
    total_tokens: int = 0
    tool_calls: int = 0


@dataclass(frozen=True)
class ErrorEvent(StreamEvent):
    """The model call failed; the invocation terminates."""

    kind: ClassVar[str] = "error"

    error: str = ""
