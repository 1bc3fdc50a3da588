"""Registry of agent variants.

A variant pairs an :class:`AgentType` with a default step budget and a
factory that builds its tool adapter from a :class:`BenchConfig`.  The loop
never branches on the variant; adding one means registering a factory.

Usage -- decorator style::

    @register_variant(AgentType.SQL, default_max_steps=50)
    def build_sql(config: BenchConfig, **overrides) -> ToolAdapter:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.infrastructure.config import BenchConfig
from agent_tool_bench.infrastructure.models import create_embeddings
from agent_tool_bench.tools.base import ToolAdapter
from agent_tool_bench.tools.embedding import EmbeddingToolAdapter
from agent_tool_bench.tools.filesystem import FilesystemToolAdapter
from agent_tool_bench.tools.shell import ShellToolAdapter
from agent_tool_bench.tools.sql import SqlToolAdapter

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 50
SHELL_MAX_STEPS = 20

AdapterFactory = Callable[..., ToolAdapter]


@dataclass(frozen=True)
class AgentVariant:
    """One tool-access strategy under test."""

    agent_type: AgentType
    default_max_steps: int
    build_adapter: AdapterFactory

    @property
    def name(self) -> str:
        return self.agent_type.value

    def max_steps(self, config: BenchConfig) -> int:
        """Configured budget, or this variant's default."""
        return config.loop.max_steps or self.default_max_steps


_VARIANTS: dict[AgentType, AgentVariant] = {}


def register_variant(
    agent_type: AgentType,
    *,
    default_max_steps: int = DEFAULT_MAX_STEPS,
    overwrite: bool = False,
) -> Callable[[AdapterFactory], AdapterFactory]:
    """Decorator registering an adapter factory for *agent_type*.

    Raises ``ValueError`` on duplicates unless *overwrite* is set.
    """

    def decorator(factory: AdapterFactory) -> AdapterFactory:
        if agent_type in _VARIANTS and not overwrite:
            raise ValueError(f"Agent variant '{agent_type.value}' is already registered")
        _VARIANTS[agent_type] = AgentVariant(agent_type, default_max_steps, factory)
        return factory

    return decorator


def get_variant(agent_type: AgentType | str) -> AgentVariant:
    """Return the registered variant.

    Raises ``KeyError`` naming the available variants if not found.
    """
    try:
        key = agent_type if isinstance(agent_type, AgentType) else AgentType(agent_type)
        return _VARIANTS[key]
    except (KeyError, ValueError):
        raise KeyError(
            f"Unknown agent type: {getattr(agent_type, 'value', agent_type)}. "
            f"Available: {', '.join(list_variants())}"
        ) from None


def list_variants() -> list[str]:
    return [agent_type.value for agent_type in _VARIANTS]


def is_known_agent(name: str) -> bool:
    return name in list_variants()


# ---------------------------------------------------------------------------
# Built-in variants
# ---------------------------------------------------------------------------


@register_variant(AgentType.BASH, default_max_steps=SHELL_MAX_STEPS)
def build_shell_adapter(config: BenchConfig, **overrides: Any) -> ToolAdapter:
    return ShellToolAdapter(
        config.corpus.filesystem_dir,
        config.shell,
        max_output_chars=config.loop.max_output_chars,
        **overrides,
    )


@register_variant(AgentType.FS)
def build_filesystem_adapter(config: BenchConfig, **overrides: Any) -> ToolAdapter:
    return FilesystemToolAdapter(
        config.corpus.filesystem_dir,
        config.filesystem,
        max_output_chars=config.loop.max_output_chars,
        **overrides,
    )


@register_variant(AgentType.SQL)
def build_sql_adapter(config: BenchConfig, **overrides: Any) -> ToolAdapter:
    return SqlToolAdapter(
        config.corpus.database_path,
        max_output_chars=config.loop.max_output_chars,
        **overrides,
    )


@register_variant(AgentType.EMBEDDING)
def build_embedding_adapter(config: BenchConfig, **overrides: Any) -> ToolAdapter:
    embeddings = overrides.pop("embeddings", None) or create_embeddings(config.embedding.model)
    return EmbeddingToolAdapter(
        embeddings,
        config.corpus.database_path,
        embeddings_path=config.corpus.embeddings_path,
        index_path=config.corpus.index_path,
        config=config.embedding,
        max_output_chars=config.loop.max_output_chars,
        **overrides,
    )
