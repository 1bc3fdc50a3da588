"""Stream event dispatch for agent-tool-bench.

Provides the progress-sink interface (``StreamCallbacks``) and a synchronous
bus that turns ``StreamEvent`` instances into sink callbacks.  The bus
catches and logs every handler error so that a failing sink never alters
the agent loop's control flow.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from agent_tool_bench.domain.events import (
    FinishStepEvent,
    StreamEvent,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from agent_tool_bench.domain.values import ProgressUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------
SyncHandler = Callable[[StreamEvent], None]
TextCallback = Callable[[str], None]
ToolCallCallback = Callable[[str, Mapping[str, Any]], None]
ToolResultCallback = Callable[[str, str], None]
ProgressCallback = Callable[[ProgressUpdate], None]


# ===================================================================== #
#  Progress sink                                                         #
# ===================================================================== #


@dataclass(frozen=True)
class StreamCallbacks:
    """Observer of one running invocation.

    Every callback is optional.  They are advisory: return values are
    ignored and exceptions are logged and swallowed by the bus.
    """

    on_text: TextCallback | None = None
    on_tool_call: ToolCallCallback | None = None
    on_tool_result: ToolResultCallback | None = None
    on_progress: ProgressCallback | None = None


# ===================================================================== #
#  Synchronous Event Bus                                                 #
# ===================================================================== #


class EventBus:
    """Thread-safe synchronous pub-sub for stream events.

    Handlers are invoked **in registration order**.  A handler that raises is
    logged and skipped; subsequent handlers still execute.

    Usage::

        bus = EventBus()
        bus.subscribe(TextDelta, my_handler)
        bus.publish(TextDelta(text="hello"))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[StreamEvent], list[SyncHandler]] = defaultdict(list)

    # -- subscription -------------------------------------------------------

    def subscribe(self, event_type: type[StreamEvent], handler: SyncHandler) -> None:
        """Register *handler* for a specific *event_type*."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def attach(self, callbacks: StreamCallbacks | None) -> None:
        """Route events to the callbacks of a progress sink.

        ``tool-call`` and ``finish-step`` events also report progress, so a
        sink sees updated totals right after each tool call and each step.
        """
        if callbacks is None:
            return

        if callbacks.on_text is not None:
            on_text = callbacks.on_text
            self.subscribe(TextDelta, lambda e: on_text(e.text))
        if callbacks.on_tool_call is not None:
            on_tool_call = callbacks.on_tool_call
            self.subscribe(ToolCallEvent, lambda e: on_tool_call(e.tool_name, dict(e.args)))
        if callbacks.on_tool_result is not None:
            on_tool_result = callbacks.on_tool_result
            self.subscribe(ToolResultEvent, lambda e: on_tool_result(e.tool_name, e.result))
        if callbacks.on_progress is not None:
            on_progress = callbacks.on_progress
            tracker = _ProgressTracker()
            self.subscribe(ToolCallEvent, lambda e: on_progress(tracker.on_tool_call()))
            self.subscribe(FinishStepEvent, lambda e: on_progress(tracker.on_finish_step(e)))

    # -- publishing ---------------------------------------------------------

    def publish(self, event: StreamEvent) -> None:
        """Dispatch *event* to the handlers registered for its type."""
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.warning(
                    "Error in stream handler %r for %s", handler, event.kind, exc_info=True
                )


class _ProgressTracker:
    """Running totals for ``on_progress``, derived from the event stream."""

    def __init__(self) -> None:
        self.tool_calls = 0
        self.tokens = 0

    def on_tool_call(self) -> ProgressUpdate:
        self.tool_calls += 1
        return ProgressUpdate(tool_calls=self.tool_calls, tokens=self.tokens)

    def on_finish_step(self, event: FinishStepEvent) -> ProgressUpdate:
        self.tokens = event.total_tokens
        self.tool_calls = event.tool_calls
        return ProgressUpdate(tool_calls=self.tool_calls, tokens=self.tokens)
