"""Read-only SQL tools over the corpus database."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from pathlib import Path

from pydantic import BaseModel, Field

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.domain.exceptions import QueryRejectedError
from agent_tool_bench.infrastructure.config import DEFAULT_MAX_OUTPUT_CHARS
from agent_tool_bench.infrastructure.corpus import open_readonly_database, rows_to_dicts
from agent_tool_bench.tools.base import ToolAdapter, ToolCapability, truncate_output

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_ALLOWED_PREFIXES = ("SELECT", "WITH")

SQL_TRUNCATION_HINT = "Use LIMIT or more specific WHERE clauses to narrow results."

SYSTEM_PROMPT = """You are a data analyst assistant that queries GitHub event data stored in a SQLite database.

The database has the following tables:
- repos (id, owner, name, full_name)
- users (id, login, issues_opened, prs_opened, comments_made)
- issues (id, repo_id, number, title, body, state, author, labels_json, created_at, updated_at, closed_at)
- pulls (id, repo_id, number, title, body, state, author, merged, merged_at, created_at, updated_at)
- comments (id, issue_id, pull_id, body, author, created_at)
- events (id, type, actor_login, repo_name, payload_json, created_at)

You have access to SQL tools:
- query: Execute a SELECT query
- schema: Get full database schema
- tables: List all tables
- sample: Get sample rows from a table
- count: Count rows in a table

Use SQL to answer questions. Start by understanding the schema if needed, then write queries to find the answer.

Tips:
- Use JOINs to connect related tables (e.g., issues to repos via repo_id)
- labels_json and payload_json are JSON strings - use json_extract() to query them
- The 'merged' column in pulls is 0/1 (not true/false)
- Use LIKE for text pattern matching
- Use GROUP BY and aggregate functions for counting/analysis"""


def check_read_only(sql: str) -> str:
    """Return *sql* unchanged if it starts with ``SELECT`` or ``WITH``.

    Raises
    ------
    QueryRejectedError
        For any other statement.  Nothing is rewritten or executed.
    """
    if not sql.strip().upper().startswith(_ALLOWED_PREFIXES):
        raise QueryRejectedError("Only SELECT queries are allowed", tool_name="query")
    return sql


def check_identifier(name: str) -> str:
    """Validate a table name before it is interpolated into SQL."""
    if not IDENTIFIER_RE.match(name):
        raise QueryRejectedError(f"Invalid table name: {name!r}")
    return name


# ---------------------------------------------------------------------------
# Input schemas
# ---------------------------------------------------------------------------


class QueryInput(BaseModel):
    sql: str = Field(description="SQL query to execute (SELECT only)")


class NoInput(BaseModel):
    pass


class SampleInput(BaseModel):
    table: str = Field(description="Table name")
    limit: int = Field(default=5, ge=0, description="Number of rows to return")


class CountInput(BaseModel):
    table: str = Field(description="Table name")
    where: str | None = Field(
        default=None, description="Optional WHERE condition (without the WHERE keyword)"
    )


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class SqlToolAdapter(ToolAdapter):
    """``query``/``schema``/``tables``/``sample``/``count`` over SQLite.

    The connection is opened lazily on first use and shared by every call
    of this adapter; it is read-only at the engine level.
    """

    agent_type = AgentType.SQL

    def __init__(
        self,
        database_path: str | Path,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    ) -> None:
        self._database_path = Path(database_path)
        self._max_output_chars = max_output_chars
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = open_readonly_database(self._database_path)
                logger.debug("Opened %s read-only", self._database_path)
            return self._conn

    def _rows_json(self, sql: str, params: tuple = ()) -> str:
        rows = self.connection.execute(sql, params).fetchall()
        output = json.dumps(rows_to_dicts(rows), indent=2, default=str, ensure_ascii=False)
        return truncate_output(output, self._max_output_chars, SQL_TRUNCATION_HINT)

    def _table_rows(self, column: str) -> list[str]:
        rows = self.connection.execute(
            f"SELECT {column} FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ).fetchall()
        return [row[0] for row in rows]

    # -- operations -----------------------------------------------------------

    def query(self, params: QueryInput) -> str:
        return self._rows_json(check_read_only(params.sql))

    def schema(self, params: NoInput | None = None) -> str:
        return "\n\n".join(self._table_rows("sql"))

    def tables(self, params: NoInput | None = None) -> str:
        return "\n".join(self._table_rows("name"))

    def sample(self, params: SampleInput) -> str:
        table = check_identifier(params.table)
        return self._rows_json(f"SELECT * FROM {table} LIMIT ?", (params.limit,))

    def count(self, params: CountInput) -> str:
        table = check_identifier(params.table)
        sql = f"SELECT COUNT(*) AS count FROM {table}"
        if params.where:
            sql += f" WHERE {params.where}"
        (value,) = self.connection.execute(sql).fetchone()
        return f"{value} rows"

    # -- ToolAdapter ----------------------------------------------------------

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                "query",
                "Execute a SQL query on the GitHub events database. Returns results as "
                "JSON array. Use SELECT queries only.",
                QueryInput,
                self.query,
            ),
            ToolCapability(
                "schema",
                "Get the database schema showing all tables and their columns",
                NoInput,
                self.schema,
            ),
            ToolCapability("tables", "List all tables in the database", NoInput, self.tables),
            ToolCapability(
                "sample",
                "Get a sample of rows from a table to understand its structure",
                SampleInput,
                self.sample,
            ),
            ToolCapability(
                "count",
                "Count rows in a table, optionally with a WHERE condition",
                CountInput,
                self.count,
            ),
        ]

    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
