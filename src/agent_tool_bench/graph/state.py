"""LangGraph state definition for the agent tool loop.

Defines ``AgentRunState``, the ``TypedDict`` that flows through the
LangGraph ``StateGraph``.  The message transcript is an append-only channel
(``Annotated[list, operator.add]``) so each node emits only its new
messages; every other field is overwritten by the node that sets it.

Note: We intentionally do NOT use ``from __future__ import annotations`` because
LangGraph needs to resolve type hints at runtime via ``get_type_hints()``.
"""

import operator
from typing import Annotated, Any, TypedDict

from agent_tool_bench.domain.enums import FinishReason, LoopStatus


class AgentRunState(TypedDict, total=False):
    """State owned by one agent invocation.

    Fields are grouped into:

    * **Loop control** -- step counter, budget, status, and the model
      failure that ended the loop, if any.
    * **Per-step outcome** -- finish reason and token usage of the last step.
    * **Aggregates** -- what survives into ``AgentResult``.
    * **Transcript** -- messages exchanged with the model.
    """

    # -- Loop control --------------------------------------------------------
    step_count: int
    max_steps: int
    status: LoopStatus
    error: BaseException | None

    # -- Per-step outcome ----------------------------------------------------
    finish_reason: FinishReason
    step_tokens: int

    # -- Aggregates ----------------------------------------------------------
    accumulated_text: str
    tool_call_count: int
    token_count: int

    # -- Transcript (append-reducer) -----------------------------------------
    messages: Annotated[list, operator.add]

    # -- Extensibility -------------------------------------------------------
    metadata: dict[str, Any]
