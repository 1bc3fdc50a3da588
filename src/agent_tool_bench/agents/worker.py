"""Worker process entry point: ``python -m agent_tool_bench.agents.worker``.

Runs exactly one agent invocation and reports it to the parent over the
original stdout, one JSON message per line (see :mod:`.protocol`).  Stray
writes to stdout by libraries are redirected to stderr so they cannot
corrupt the message stream.

Parameters arrive through the environment:

``AGENT_TYPE``
    Registered variant name (``bash``, ``fs``, ``sql``, ``embedding``).
``AGENT_QUESTION``
    The question text.
``PARENT_SPAN_CONTEXT``
    Optional opaque trace token; the run is traced as its descendant.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import IO

from dotenv import load_dotenv

from agent_tool_bench.agents.loop import run_agent_type
from agent_tool_bench.agents.protocol import (
    AGENT_TYPE_VAR,
    QUESTION_VAR,
    TRACE_CONTEXT_VAR,
    MessageWriter,
)
from agent_tool_bench.domain.enums import MessageType
from agent_tool_bench.domain.values import ProgressUpdate
from agent_tool_bench.infrastructure.config import BenchConfig
from agent_tool_bench.infrastructure.event_bus import StreamCallbacks
from agent_tool_bench.infrastructure.tracing import flush_traces, run_traced

logger = logging.getLogger(__name__)


def claim_stdout() -> IO[str]:
    """Return a private handle on stdout and point fd 1 at stderr."""
    sys.stdout.flush()
    channel = os.fdopen(os.dup(1), "w", encoding="utf-8", buffering=1)
    os.dup2(2, 1)
    sys.stdout = sys.stderr
    return channel


def forwarding_callbacks(writer: MessageWriter) -> StreamCallbacks:
    """Sink that turns every loop event into a protocol message."""

    def on_progress(update: ProgressUpdate) -> None:
        writer.send(MessageType.PROGRESS, tool_calls=update.tool_calls, tokens=update.tokens)

    return StreamCallbacks(
        on_text=lambda chunk: writer.send(MessageType.TEXT, chunk=chunk),
        on_tool_call=lambda name, args: writer.send(
            MessageType.TOOL_CALL, tool_name=name, args=dict(args)
        ),
        on_tool_result=lambda name, result: writer.send(
            MessageType.TOOL_RESULT, tool_name=name, result=result
        ),
        on_progress=on_progress,
    )


def run_worker(writer: MessageWriter, environ: Mapping[str, str] | None = None) -> int:
    """Run the invocation described by *environ* and report it; returns the exit code."""
    env = os.environ if environ is None else environ
    agent_type = env.get(AGENT_TYPE_VAR, "")
    question = env.get(QUESTION_VAR, "")
    parent = env.get(TRACE_CONTEXT_VAR) or None

    try:
        if not agent_type or not question:
            raise ValueError(f"{AGENT_TYPE_VAR} and {QUESTION_VAR} must both be set")
        config = BenchConfig.from_env(env)
        callbacks = forwarding_callbacks(writer)
        logger.info("worker: running %s agent (traced=%s)", agent_type, parent is not None)
        if parent:
            result = run_traced(
                f"{agent_type}-agent",
                run_agent_type,
                agent_type,
                question,
                callbacks,
                parent=parent,
                metadata={"agent_type": agent_type},
                config=config,
            )
        else:
            result = run_agent_type(agent_type, question, callbacks, config=config)
    except Exception as exc:
        logger.error("worker: %s agent failed: %s: %s", agent_type, type(exc).__name__, exc)
        flush_traces()
        writer.send(MessageType.ERROR, error=str(exc), error_type=type(exc).__name__)
        return 1

    flush_traces()
    writer.send(MessageType.DONE, result=result.to_dict())
    logger.info("worker: %s agent done", agent_type)
    return 0


def main() -> int:
    channel = claim_stdout()
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    writer = MessageWriter(channel)
    try:
        return run_worker(writer)
    finally:
        channel.close()


if __name__ == "__main__":
    sys.exit(main())
