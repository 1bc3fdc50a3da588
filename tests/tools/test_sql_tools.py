"""Tests for the read-only SQL tool adapter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agent_tool_bench.domain.exceptions import CorpusConfigurationError, QueryRejectedError
from agent_tool_bench.tools.sql import (
    QueryInput,
    SqlToolAdapter,
    check_identifier,
    check_read_only,
)


@pytest.fixture
def adapter(database_path: Path):
    sql = SqlToolAdapter(database_path)
    yield sql
    sql.close()


def run(adapter: SqlToolAdapter, name: str, **args) -> str:
    return adapter.registry().execute(name, args)


class TestReadOnlyGuard:

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT * FROM repos",
            "  select 1",
            "WITH x AS (SELECT 1) SELECT * FROM x",
        ],
    )
    def test_allowed(self, sql: str) -> None:
        assert check_read_only(sql) == sql

    @pytest.mark.parametrize(
        "sql",
        ["DELETE FROM repos", "DROP TABLE issues", "PRAGMA table_info(repos)", ""],
    )
    def test_rejected(self, sql: str) -> None:
        with pytest.raises(QueryRejectedError, match="Only SELECT queries are allowed"):
            check_read_only(sql)

    def test_identifier(self) -> None:
        assert check_identifier("issues") == "issues"
        with pytest.raises(QueryRejectedError, match="Invalid table name"):
            check_identifier("issues; DROP TABLE repos")


class TestQuery:

    def test_rows_as_json_objects(self, adapter: SqlToolAdapter) -> None:
        out = run(adapter, "query", sql="SELECT full_name FROM repos ORDER BY id")
        assert json.loads(out) == [{"full_name": "acme/widgets"}, {"full_name": "acme/gadgets"}]

    def test_join_and_aggregate(self, adapter: SqlToolAdapter) -> None:
        out = run(
            adapter,
            "query",
            sql=(
                "SELECT r.full_name, COUNT(*) AS n FROM issues i "
                "JOIN repos r ON i.repo_id = r.id GROUP BY r.full_name ORDER BY n DESC"
            ),
        )
        assert json.loads(out)[0] == {"full_name": "acme/widgets", "n": 2}

    def test_json_extract(self, adapter: SqlToolAdapter) -> None:
        out = run(
            adapter,
            "query",
            sql="SELECT number FROM issues WHERE json_extract(labels_json, '$[1]') = 'p1'",
        )
        assert json.loads(out) == [{"number": 2}]

    def test_write_rejected_as_error_text(self, adapter: SqlToolAdapter) -> None:
        out = run(adapter, "query", sql="DELETE FROM repos")
        assert out == "Error: Only SELECT queries are allowed"
        assert run(adapter, "count", table="repos") == "2 rows"

    def test_disguised_write_fails_at_engine(self, adapter: SqlToolAdapter) -> None:
        out = run(
            adapter,
            "query",
            sql="WITH x AS (SELECT 1) INSERT INTO repos (id) SELECT 99 FROM x",
        )
        assert out.startswith("Error: ")
        assert run(adapter, "count", table="repos") == "2 rows"

    def test_sql_error_is_error_text(self, adapter: SqlToolAdapter) -> None:
        assert run(adapter, "query", sql="SELECT * FROM nope").startswith("Error: ")

    def test_truncated(self, database_path: Path) -> None:
        sql = SqlToolAdapter(database_path, max_output_chars=50)
        try:
            out = sql.query(QueryInput(sql="SELECT * FROM issues"))
        finally:
            sql.close()
        assert "[OUTPUT TRUNCATED: showing 50 of" in out
        assert out.endswith("Use LIMIT or more specific WHERE clauses to narrow results.]")


class TestIntrospection:

    def test_tables(self, adapter: SqlToolAdapter) -> None:
        assert run(adapter, "tables").splitlines() == [
            "repos",
            "users",
            "issues",
            "pulls",
            "comments",
            "events",
        ]

    def test_schema_contains_create_statements(self, adapter: SqlToolAdapter) -> None:
        out = run(adapter, "schema")
        assert out.count("CREATE TABLE") == 6
        assert "labels_json TEXT" in out

    def test_sample_default_limit(self, adapter: SqlToolAdapter) -> None:
        rows = json.loads(run(adapter, "sample", table="issues"))
        assert len(rows) == 3
        assert rows[0]["title"] == "Memory leak in parser"

    def test_sample_limit(self, adapter: SqlToolAdapter) -> None:
        assert len(json.loads(run(adapter, "sample", table="users", limit=1))) == 1

    def test_sample_bad_identifier(self, adapter: SqlToolAdapter) -> None:
        out = run(adapter, "sample", table="users--")
        assert out == "Error: Invalid table name: 'users--'"

    def test_count(self, adapter: SqlToolAdapter) -> None:
        assert run(adapter, "count", table="issues") == "3 rows"
        assert run(adapter, "count", table="issues", where="state = 'open'") == "2 rows"

    def test_count_unknown_table(self, adapter: SqlToolAdapter) -> None:
        assert run(adapter, "count", table="nope").startswith("Error: ")


class TestConnection:

    def test_missing_database(self, tmp_path: Path) -> None:
        adapter = SqlToolAdapter(tmp_path / "missing.sqlite")
        with pytest.raises(CorpusConfigurationError, match="Database not found"):
            adapter.connection

    def test_connection_reused_until_closed(self, adapter: SqlToolAdapter) -> None:
        first = adapter.connection
        assert adapter.connection is first
        adapter.close()
        assert adapter.connection is not first

    def test_prompt_names_tables(self, adapter: SqlToolAdapter) -> None:
        prompt = adapter.system_prompt()
        for table in ("repos", "users", "issues", "pulls", "comments", "events"):
            assert f"- {table} (" in prompt
