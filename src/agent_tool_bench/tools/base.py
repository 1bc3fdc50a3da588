"""Tool adapter contract shared by every agent variant.

A ``ToolCapability`` is one named operation with a pydantic input schema.
A ``ToolRegistry`` maps tool names to capabilities and is the only thing the
agent loop dispatches through, so adding a variant never touches the loop.
``ToolAdapter`` bundles a variant's capabilities with its system prompt.

``ToolCapability.run`` is the single point where tool failures become
``Error: ...`` text for the model.  Nothing raised by a tool escapes it.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, ValidationError

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.infrastructure.config import DEFAULT_MAX_OUTPUT_CHARS

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "

DEFAULT_TRUNCATION_HINT = "Use more specific queries or filters to narrow results."


def truncate_output(
    output: str,
    limit: int = DEFAULT_MAX_OUTPUT_CHARS,
    hint: str = DEFAULT_TRUNCATION_HINT,
) -> str:
    """Cap *output* at *limit* characters.

    Strings within the limit come back unchanged.  Longer strings keep
    exactly *limit* characters of content followed by a marker naming how
    much was shown.
    """
    if len(output) <= limit:
        return output
    return (
        f"{output[:limit]}\n\n[OUTPUT TRUNCATED: showing {limit:,} of "
        f"{len(output):,} characters. {hint}]"
    )


def format_error(exc: BaseException) -> str:
    return f"{ERROR_PREFIX}{exc}"


def _format_validation_error(tool_name: str, exc: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in exc.errors()
    )
    return f"{ERROR_PREFIX}invalid input for {tool_name}: {problems}"


# ---------------------------------------------------------------------------
# ToolCapability
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCapability:
    """A named operation exposed to the model.

    Attributes
    ----------
    name:
        Tool name the model calls.
    description:
        One-line description sent with the tool schema.
    input_schema:
        Pydantic model validating the call arguments.
    execute:
        Receives the validated input and returns text (or any
        JSON-serializable value, which is dumped with indentation).
    max_output_chars:
        Cap applied to dumped structured results.  Text results are
        returned as ``execute`` produced them.
    """

    name: str
    description: str
    input_schema: type[BaseModel]
    execute: Callable[[Any], Any]
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS

    def run(self, args: Mapping[str, Any] | None) -> str:
        """Validate *args*, execute, and return the result text.

        Validation failures and any exception raised by ``execute`` are
        returned as ``Error: ...`` text.
        """
        try:
            params = self.input_schema.model_validate(dict(args or {}))
        except ValidationError as exc:
            return _format_validation_error(self.name, exc)

        try:
            output = self.execute(params)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", self.name, exc)
            return format_error(exc)

        if isinstance(output, str):
            return output
        text = json.dumps(output, indent=2, default=str)
        return truncate_output(text, self.max_output_chars)

    def as_tool(self) -> BaseTool:
        """Wrap as a LangChain tool so chat models can bind its schema."""

        def _invoke(**kwargs: Any) -> str:
            return self.run(kwargs)

        return StructuredTool.from_function(
            func=_invoke,
            name=self.name,
            description=self.description,
            args_schema=self.input_schema,
        )


# ---------------------------------------------------------------------------
# ToolRegistry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Name -> capability mapping bound to one agent invocation."""

    def __init__(self, capabilities: Iterable[ToolCapability]) -> None:
        self._capabilities: dict[str, ToolCapability] = {}
        for capability in capabilities:
            if capability.name in self._capabilities:
                raise ValueError(f"Duplicate tool name {capability.name!r}")
            self._capabilities[capability.name] = capability

    @property
    def names(self) -> list[str]:
        return list(self._capabilities)

    def get(self, name: str) -> ToolCapability | None:
        return self._capabilities.get(name)

    def execute(self, name: str, args: Mapping[str, Any] | None) -> str:
        """Run the named tool.  Unknown names yield an error result."""
        capability = self._capabilities.get(name)
        if capability is None:
            return (
                f"{ERROR_PREFIX}Unknown tool {name!r}. "
                f"Available tools: {', '.join(self._capabilities)}"
            )
        return capability.run(args)

    def as_tools(self) -> list[BaseTool]:
        return [capability.as_tool() for capability in self._capabilities.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[ToolCapability]:
        return iter(self._capabilities.values())

    def __len__(self) -> int:
        return len(self._capabilities)

    def __repr__(self) -> str:
        return f"ToolRegistry({self.names})"


# ---------------------------------------------------------------------------
# ToolAdapter
# ---------------------------------------------------------------------------


class ToolAdapter(ABC):
    """A variant's capability set plus the system prompt describing it."""

    agent_type: ClassVar[AgentType]

    @abstractmethod
    def capabilities(self) -> list[ToolCapability]:
        """Return the capabilities this adapter exposes."""

    @abstractmethod
    def system_prompt(self) -> str:
        """Return the instructions given to the model."""

    def registry(self) -> ToolRegistry:
        return ToolRegistry(self.capabilities())

    def close(self) -> None:
        """Release resources held by the adapter."""
