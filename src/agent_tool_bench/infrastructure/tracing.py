"""LangSmith span helpers.

The parent process exports the current run as an opaque token (the
``langsmith-trace`` header value); the worker hands it back to LangSmith as
the parent of its own run without ever parsing it.  With tracing disabled
there is no current run, the token is ``None``, and everything runs
untraced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from langsmith import traceable
from langsmith.run_helpers import get_current_run_tree

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRACE_HEADER = "langsmith-trace"


def export_trace_context() -> str | None:
    """Return the current run's trace token, or ``None`` outside a run."""
    run_tree = get_current_run_tree()
    if run_tree is None:
        return None
    return run_tree.to_headers().get(_TRACE_HEADER)


def run_traced(
    name: str,
    fn: Callable[..., T],
    *args: Any,
    parent: str | None = None,
    metadata: dict[str, Any] | None = None,
    **kwargs: Any,
) -> T:
    """Call ``fn(*args, **kwargs)`` inside a LangSmith span named *name*.

    Parameters
    ----------
    parent:
        Opaque token from :func:`export_trace_context` in another process.
        When given, the span is attached as its descendant.
    metadata:
        Extra metadata recorded on the span.
    """
    extra: dict[str, Any] = {}
    if parent:
        extra["parent"] = parent
    if metadata:
        extra["metadata"] = metadata
    wrapped = traceable(name=name, run_type="chain")(fn)
    return wrapped(*args, langsmith_extra=extra, **kwargs)


def flush_traces() -> None:
    """Block until queued spans are sent; call before a worker exits."""
    from langchain_core.tracers.langchain import wait_for_all_tracers

    try:
        wait_for_all_tracers()
    except Exception as exc:
        logger.warning("flush_traces: %s", exc)
