"""Run agent invocations in isolated worker processes.

Each call to :func:`run_agent_in_worker` starts one child process, relays
its protocol messages to the caller's :class:`StreamCallbacks` in arrival
order and resolves with the child's :class:`AgentResult`.  The child is
killed as soon as a terminal message arrives, when the awaiting task is
cancelled, and at interpreter exit.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from agent_tool_bench.agents.protocol import (
    AGENT_TYPE_VAR,
    QUESTION_VAR,
    TRACE_CONTEXT_VAR,
    decode_message,
)
from agent_tool_bench.domain.enums import AgentType, MessageType
from agent_tool_bench.domain.exceptions import (
    AgentToolBenchError,
    StepLimitExceededError,
    WorkerError,
)
from agent_tool_bench.domain.values import AgentResult, ProgressUpdate
from agent_tool_bench.infrastructure.event_bus import StreamCallbacks
from agent_tool_bench.infrastructure.tracing import export_trace_context

logger = logging.getLogger(__name__)

WORKER_MODULE = "agent_tool_bench.agents.worker"

# Tool results can be large JSON documents on a single line.
_STREAM_LIMIT = 2**24

_LIVE: set[asyncio.subprocess.Process] = set()


def default_worker_command() -> list[str]:
    return [sys.executable, "-m", WORKER_MODULE]


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


@atexit.register
def kill_live_workers() -> None:
    """Kill every worker still running."""
    for proc in list(_LIVE):
        _kill(proc)
    _LIVE.clear()


# ---------------------------------------------------------------------------
# Message dispatch
# ---------------------------------------------------------------------------


def _safe(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.warning("Error in stream callback %r", callback, exc_info=True)


_DISPATCH: dict[MessageType, Callable[[StreamCallbacks, Mapping[str, Any]], None]] = {
    MessageType.TEXT: lambda cb, m: _safe(cb.on_text, m.get("chunk", "")),
    MessageType.TOOL_CALL: lambda cb, m: _safe(
        cb.on_tool_call, m.get("tool_name", ""), m.get("args") or {}
    ),
    MessageType.TOOL_RESULT: lambda cb, m: _safe(
        cb.on_tool_result, m.get("tool_name", ""), m.get("result", "")
    ),
    MessageType.PROGRESS: lambda cb, m: _safe(
        cb.on_progress,
        ProgressUpdate(tool_calls=int(m.get("tool_calls", 0)), tokens=int(m.get("tokens", 0))),
    ),
}


def dispatch_message(message: Mapping[str, Any], callbacks: StreamCallbacks) -> None:
    """Forward one non-terminal message to the matching sink callback."""
    try:
        message_type = MessageType(message["type"])
    except ValueError:
        logger.debug("Ignoring unknown worker message type %r", message.get("type"))
        return
    handler = _DISPATCH.get(message_type)
    if handler is not None:
        handler(callbacks, message)


def remote_error(message: Mapping[str, Any], agent_type: str) -> AgentToolBenchError:
    """Exception for a worker's ``error`` message."""
    error = str(message.get("error", "")) or "Worker reported an error"
    error_type = str(message.get("error_type", ""))
    if error_type == StepLimitExceededError.__name__:
        return StepLimitExceededError(message=error, details={"agent_type": agent_type})
    return WorkerError(error, agent_type=agent_type, details={"error_type": error_type})


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


def worker_environment(
    agent_type: str,
    question: str,
    base: Mapping[str, str] | None = None,
    trace_context: str | None = None,
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env[AGENT_TYPE_VAR] = agent_type
    env[QUESTION_VAR] = question
    if trace_context:
        env[TRACE_CONTEXT_VAR] = trace_context
    else:
        env.pop(TRACE_CONTEXT_VAR, None)
    return env


async def run_agent_in_worker(
    agent_type: AgentType | str,
    question: str,
    callbacks: StreamCallbacks | None = None,
    *,
    command: Sequence[str] | None = None,
    env: Mapping[str, str] | None = None,
    trace_context: str | None = None,
) -> AgentResult:
    """Run one invocation in a fresh child process.

    Parameters
    ----------
    command:
        Worker command line; defaults to this interpreter running
        :mod:`agent_tool_bench.agents.worker`.
    env:
        Base environment for the child (defaults to ``os.environ``).
    trace_context:
        Opaque trace token; defaults to the current run's token, if any.

    Raises
    ------
    StepLimitExceededError
        The worker's loop exhausted its budget.
    WorkerError
        The worker reported any other error, or exited without a result.
    """
    name = agent_type.value if isinstance(agent_type, AgentType) else str(agent_type)
    callbacks = callbacks or StreamCallbacks()
    if trace_context is None:
        trace_context = export_trace_context()

    proc = await asyncio.create_subprocess_exec(
        *(command or default_worker_command()),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        env=worker_environment(name, question, env, trace_context),
        limit=_STREAM_LIMIT,
    )
    _LIVE.add(proc)
    logger.debug("Started %s worker pid=%d", name, proc.pid)

    try:
        assert proc.stdout is not None
        while True:
            line = await proc.stdout.readline()
            if not line:
                break
            message = decode_message(line)
            if message is None:
                continue

            message_type = message.get("type")
            if message_type == MessageType.DONE.value:
                _kill(proc)
                return AgentResult.from_dict(message.get("result") or {})
            if message_type == MessageType.ERROR.value:
                _kill(proc)
                raise remote_error(message, name)
            dispatch_message(message, callbacks)

        exit_code = await proc.wait()
        raise WorkerError(
            f"{name} worker exited with code {exit_code} without a result",
            agent_type=name,
            exit_code=exit_code,
        )
    finally:
        _kill(proc)
        _LIVE.discard(proc)
        if proc.returncode is None:
            await proc.wait()
