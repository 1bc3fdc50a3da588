"""Shared fixtures for the agent-tool-bench test suite.

``corpus_dir`` builds a miniature corpus in all three shapes: two repos
(``acme/widgets`` with issues 1 and 2 and pull 3, ``acme/gadgets`` with
issue 1), two users, a SQLite database and a 4-dimensional vector store.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import numpy as np
import pytest

from agent_tool_bench.infrastructure.config import BenchConfig, CorpusConfig
from tests.helpers.fake_embeddings import KeywordEmbeddings

# ---------------------------------------------------------------------------
# Corpus contents
# ---------------------------------------------------------------------------

REPOS = [
    {"id": 1, "owner": "acme", "name": "widgets", "full_name": "acme/widgets"},
    {"id": 2, "owner": "acme", "name": "gadgets", "full_name": "acme/gadgets"},
]

USERS = [
    {"id": 1, "login": "alice", "issues_opened": 2, "prs_opened": 1, "comments_made": 1},
    {"id": 2, "login": "bob", "issues_opened": 1, "prs_opened": 0, "comments_made": 0},
]

ISSUES = [
    {
        "id": 10, "repo_id": 1, "number": 1, "title": "Memory leak in parser",
        "body": "The parser keeps growing in RAM.", "state": "open", "author": "alice",
        "labels_json": '["bug"]', "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z", "closed_at": None,
    },
    {
        "id": 11, "repo_id": 1, "number": 2, "title": "Crash on startup",
        "body": "Segfault when the config is empty.", "state": "closed", "author": "bob",
        "labels_json": '["bug", "p1"]', "created_at": "2024-01-03T00:00:00Z",
        "updated_at": "2024-01-04T00:00:00Z", "closed_at": "2024-01-04T00:00:00Z",
    },
    {
        "id": 12, "repo_id": 2, "number": 1, "title": "Add dark mode",
        "body": "Please support a dark theme.", "state": "open", "author": "alice",
        "labels_json": '["enhancement"]', "created_at": "2024-01-05T00:00:00Z",
        "updated_at": "2024-01-05T00:00:00Z", "closed_at": None,
    },
]

PULLS = [
    {
        "id": 20, "repo_id": 1, "number": 3, "title": "Fix memory leak",
        "body": "Frees parser buffers.", "state": "closed", "author": "alice",
        "merged": 1, "merged_at": "2024-01-06T00:00:00Z",
        "created_at": "2024-01-05T00:00:00Z", "updated_at": "2024-01-06T00:00:00Z",
    },
]

# (type, repo, number, title, vector)
EMBEDDED = [
    ("issue", "acme/widgets", 1, "Memory leak in parser", [1.0, 0.0, 0.0, 0.0]),
    ("issue", "acme/widgets", 2, "Crash on startup", [0.0, 1.0, 0.0, 0.0]),
    ("issue", "acme/gadgets", 1, "Add dark mode", [0.0, 0.0, 1.0, 0.0]),
    ("pull", "acme/widgets", 3, "Fix memory leak", [0.8, 0.6, 0.0, 0.0]),
]

_SCHEMA = """
CREATE TABLE repos (id INTEGER PRIMARY KEY, owner TEXT, name TEXT, full_name TEXT);
CREATE TABLE users (
    id INTEGER PRIMARY KEY, login TEXT, issues_opened INTEGER,
    prs_opened INTEGER, comments_made INTEGER
);
CREATE TABLE issues (
    id INTEGER PRIMARY KEY, repo_id INTEGER, number INTEGER, title TEXT, body TEXT,
    state TEXT, author TEXT, labels_json TEXT, created_at TEXT, updated_at TEXT,
    closed_at TEXT
);
CREATE TABLE pulls (
    id INTEGER PRIMARY KEY, repo_id INTEGER, number INTEGER, title TEXT, body TEXT,
    state TEXT, author TEXT, merged INTEGER, merged_at TEXT, created_at TEXT,
    updated_at TEXT
);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY, issue_id INTEGER, pull_id INTEGER, body TEXT,
    author TEXT, created_at TEXT
);
CREATE TABLE events (
    id INTEGER PRIMARY KEY, type TEXT, actor_login TEXT, repo_name TEXT,
    payload_json TEXT, created_at TEXT
);
"""


def _insert(conn: sqlite3.Connection, table: str, rows: list[dict]) -> None:
    for row in rows:
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})", tuple(row.values()))


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def build_corpus(root: Path) -> Path:
    """Write the miniature corpus under *root* and return it."""
    repo_names = {r["id"]: r["full_name"] for r in REPOS}

    # -- document tree
    fs = root / "filesystem"
    for repo in REPOS:
        _write_json(fs / "repos" / repo["owner"] / repo["name"] / "repo.json", repo)
    for issue in ISSUES:
        full_name = repo_names[issue["repo_id"]]
        _write_json(fs / "repos" / full_name / "issues" / f"{issue['number']}.json", issue)
    for pull in PULLS:
        full_name = repo_names[pull["repo_id"]]
        _write_json(fs / "repos" / full_name / "pulls" / f"{pull['number']}.json", pull)
    for user in USERS:
        _write_json(fs / "users" / f"{user['login']}.json", user)

    # -- relational store
    conn = sqlite3.connect(root / "database.sqlite")
    conn.executescript(_SCHEMA)
    _insert(conn, "repos", REPOS)
    _insert(conn, "users", USERS)
    _insert(conn, "issues", ISSUES)
    _insert(conn, "pulls", PULLS)
    _insert(
        conn,
        "comments",
        [{"id": 1, "issue_id": 10, "pull_id": None, "body": "Confirmed", "author": "alice",
          "created_at": "2024-01-02T00:00:00Z"}],
    )
    _insert(
        conn,
        "events",
        [{"id": 1, "type": "IssuesEvent", "actor_login": "alice", "repo_name": "acme/widgets",
          "payload_json": '{"action": "opened"}', "created_at": "2024-01-01T00:00:00Z"}],
    )
    conn.commit()
    conn.close()

    # -- vector store
    vectors = np.array([v for *_, v in EMBEDDED], dtype="<f4")
    vectors.tofile(root / "embeddings.bin")
    index = {
        "dimension": 4,
        "count": len(EMBEDDED),
        "items": [
            {
                "id": i + 1,
                "type": kind,
                "repo": repo,
                "number": number,
                "title": title,
                "body_preview": f"{title} preview",
                "offset": i,
            }
            for i, (kind, repo, number, title, _) in enumerate(EMBEDDED)
        ],
    }
    _write_json(root / "embeddings-index.json", index)
    return root


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    """Root of a freshly built miniature corpus."""
    return build_corpus(tmp_path / "data")


@pytest.fixture
def fs_root(corpus_dir: Path) -> Path:
    return corpus_dir / "filesystem"


@pytest.fixture
def database_path(corpus_dir: Path) -> Path:
    return corpus_dir / "database.sqlite"


@pytest.fixture
def bench_config(corpus_dir: Path) -> BenchConfig:
    return BenchConfig(corpus=CorpusConfig(data_dir=str(corpus_dir)))


@pytest.fixture
def keyword_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()
