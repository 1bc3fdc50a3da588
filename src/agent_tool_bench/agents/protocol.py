"""Newline-delimited JSON messages between a worker and its parent.

Every message is one JSON object on one line with a ``type`` tag from
:class:`MessageType` plus that type's fields:

=============  ==================================
type           fields
=============  ==================================
``text``       ``chunk``
``tool_call``  ``tool_name``, ``args``
``tool_result`` ``tool_name``, ``result``
``progress``   ``tool_calls``, ``tokens``
``done``       ``result`` (``AgentResult`` dict)
``error``      ``error``, ``error_type``
=============  ==================================
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from typing import IO, Any

from agent_tool_bench.domain.enums import MessageType

logger = logging.getLogger(__name__)

# Environment variables carrying a worker's parameters.
AGENT_TYPE_VAR = "AGENT_TYPE"
QUESTION_VAR = "AGENT_QUESTION"
TRACE_CONTEXT_VAR = "PARENT_SPAN_CONTEXT"


def encode_message(message_type: MessageType, **fields: Any) -> str:
    """Serialize one message as a single JSON line (with trailing newline)."""
    payload = {"type": message_type.value, **fields}
    return json.dumps(payload, default=str, ensure_ascii=False) + "\n"


def decode_message(line: str | bytes) -> dict[str, Any] | None:
    """Parse one line; returns ``None`` for blank or malformed lines."""
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Ignoring non-JSON worker output: %.200s", line)
        return None
    if not isinstance(message, Mapping) or "type" not in message:
        logger.debug("Ignoring untagged worker message: %.200s", line)
        return None
    return dict(message)


class MessageWriter:
    """Writes messages to a text stream, one flushed line per message."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def send(self, message_type: MessageType, **fields: Any) -> None:
        line = encode_message(message_type, **fields)
        with self._lock:
            self._stream.write(line)
            self._stream.flush()
