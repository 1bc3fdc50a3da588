"""Tests for the agent variant registry."""

from __future__ import annotations

import pytest

from agent_tool_bench.agents.variants import (
    get_variant,
    is_known_agent,
    list_variants,
    register_variant,
)
from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.infrastructure.config import BenchConfig, LoopConfig
from agent_tool_bench.tools.filesystem import FilesystemToolAdapter
from agent_tool_bench.tools.shell import ShellToolAdapter
from agent_tool_bench.tools.sql import SqlToolAdapter


class TestRegistry:

    def test_builtin_variants(self) -> None:
        assert list_variants() == ["bash", "fs", "sql", "embedding"]

    def test_lookup_by_name_or_enum(self) -> None:
        assert get_variant("sql") is get_variant(AgentType.SQL)
        assert get_variant("sql").name == "sql"

    def test_unknown_variant(self) -> None:
        with pytest.raises(KeyError, match="Unknown agent type: ruby. Available: bash, fs, sql, embedding"):
            get_variant("ruby")

    def test_is_known_agent(self) -> None:
        assert is_known_agent("embedding")
        assert not is_known_agent("ruby")

    def test_duplicate_registration_rejected(self) -> None:
        with pytest.raises(ValueError, match="'fs' is already registered"):
            register_variant(AgentType.FS)(lambda config: None)


class TestBudgets:

    def test_defaults(self) -> None:
        config = BenchConfig()
        assert get_variant("bash").max_steps(config) == 20
        assert get_variant("fs").max_steps(config) == 50
        assert get_variant("sql").max_steps(config) == 50
        assert get_variant("embedding").max_steps(config) == 50

    def test_configured_budget_wins(self) -> None:
        config = BenchConfig(loop=LoopConfig(max_steps=7))
        assert get_variant("bash").max_steps(config) == 7


class TestAdapters:

    def test_builds_adapter_types(self, bench_config: BenchConfig) -> None:
        fs = get_variant("fs").build_adapter(bench_config)
        sql = get_variant("sql").build_adapter(bench_config)
        shell = get_variant("bash").build_adapter(bench_config)
        try:
            assert isinstance(fs, FilesystemToolAdapter)
            assert isinstance(sql, SqlToolAdapter)
            assert isinstance(shell, ShellToolAdapter)
            assert fs.agent_type == AgentType.FS
        finally:
            for adapter in (fs, sql, shell):
                adapter.close()
