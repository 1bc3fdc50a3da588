"""Semantic search tools over pre-computed issue and pull-request vectors.

Query text is embedded at call time with the same model that produced the
stored vectors; every stored vector of the selected partition is scored by
cosine similarity in one vectorized pass.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Literal

import numpy as np
from langchain_core.embeddings import Embeddings
from numpy.typing import ArrayLike, NDArray
from pydantic import BaseModel, Field

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.domain.exceptions import ToolExecutionError
from agent_tool_bench.infrastructure.config import DEFAULT_MAX_OUTPUT_CHARS, EmbeddingConfig
from agent_tool_bench.infrastructure.corpus import (
    EmbeddingItem,
    EmbeddingStore,
    open_readonly_database,
)
from agent_tool_bench.tools.base import ToolAdapter, ToolCapability, truncate_output

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a data analyst assistant that searches GitHub event data using semantic similarity (embeddings).

You have access to embedding-based search tools:
- searchSimilar: Find issues or PRs that are semantically similar to a natural language query. This uses AI embeddings to find conceptually related content, not just keyword matches.
- getContext: Get full details of a specific issue or PR once you've found relevant results.

This approach is different from keyword search:
- It understands meaning, not just matching words
- "memory problems" will find issues about "RAM leak", "OOM errors", etc.
- It's good for finding related concepts even with different terminology

Use searchSimilar first to find relevant content, then use getContext to get full details of specific items.

Note: The similarity score ranges from 0 to 1, where 1 is a perfect match. Generally, scores above 0.7 indicate strong relevance."""

# searchSimilar partitions -> index item type
_PARTITIONS: dict[str, str | None] = {"issues": "issue", "pulls": "pull", "all": None}

_CONTEXT_QUERIES: dict[str, str] = {
    "issue": (
        "SELECT i.*, r.full_name AS repo FROM issues i "
        "JOIN repos r ON i.repo_id = r.id WHERE r.full_name = ? AND i.number = ?"
    ),
    "pull": (
        "SELECT p.*, r.full_name AS repo FROM pulls p "
        "JOIN repos r ON p.repo_id = r.id WHERE r.full_name = ? AND p.number = ?"
    ),
}


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def cosine_similarity(a: ArrayLike, b: ArrayLike) -> float:
    """``dot(a, b) / (||a|| * ||b||)``; 0.0 when either vector is zero."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarities(query: ArrayLike, matrix: NDArray[np.floating]) -> NDArray[np.float64]:
    """Cosine similarity of *query* against every row of *matrix*."""
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    denom = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, dots / denom, 0.0)
    return sims


def rank_top_k(similarities: NDArray[np.float64], k: int) -> NDArray[np.int64]:
    """Indices of the *k* highest scores; equal scores keep index order."""
    order = np.argsort(-similarities, kind="stable")
    return order[:k]


# ---------------------------------------------------------------------------
# Query embedding cache
# ---------------------------------------------------------------------------


class QueryEmbeddingCache:
    """Process-local map from query key to embedding vector.

    The key is the first ``key_chars`` characters of the query, and that
    prefix is also what gets embedded, so two queries sharing the prefix
    share one vector.
    """

    def __init__(self, key_chars: int = 8_000) -> None:
        self._key_chars = key_chars
        self._vectors: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def key(self, query: str) -> str:
        return query[: self._key_chars]

    def get_or_embed(self, query: str, embeddings: Embeddings) -> list[float]:
        key = self.key(query)
        with self._lock:
            cached = self._vectors.get(key)
        if cached is not None:
            return cached
        vector = embeddings.embed_query(key)
        with self._lock:
            self._vectors.setdefault(key, vector)
        return vector

    def __len__(self) -> int:
        return len(self._vectors)

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()


_SHARED_CACHES: dict[int, QueryEmbeddingCache] = {}


def shared_query_cache(key_chars: int = 8_000) -> QueryEmbeddingCache:
    """Return the process-wide cache for *key_chars*-long keys."""
    cache = _SHARED_CACHES.get(key_chars)
    if cache is None:
        cache = _SHARED_CACHES.setdefault(key_chars, QueryEmbeddingCache(key_chars))
    return cache


# ---------------------------------------------------------------------------
# Input schemas
# ---------------------------------------------------------------------------


class SearchSimilarInput(BaseModel):
    query: str = Field(description="Natural language query to search for")
    type: Literal["issues", "pulls", "all"] | None = Field(
        default=None, description="Type of content to search"
    )
    limit: int | None = Field(
        default=None, ge=1, description="Maximum number of results (default 10)"
    )


class GetContextInput(BaseModel):
    repo: str = Field(description='Full repo name like "owner/repo"')
    number: int = Field(description="Issue or PR number")
    type: Literal["issue", "pull"] = Field(description="Whether this is an issue or pull request")


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class EmbeddingToolAdapter(ToolAdapter):
    """``searchSimilar`` and ``getContext`` over the vector store.

    Parameters
    ----------
    embeddings:
        Client that embeds query text (any LangChain ``Embeddings``).
    store:
        Loaded vector store.  Pass ``embeddings_path``/``index_path``
        instead to load it here; a corrupt corpus raises
        ``CorpusConfigurationError`` before any tool runs.
    database_path:
        Relational store used by ``getContext``.
    cache:
        Query-embedding cache; defaults to the process-wide one for the
        configured key length.
    """

    agent_type = AgentType.EMBEDDING

    def __init__(
        self,
        embeddings: Embeddings,
        database_path: str | Path,
        *,
        store: EmbeddingStore | None = None,
        embeddings_path: str | Path | None = None,
        index_path: str | Path | None = None,
        config: EmbeddingConfig | None = None,
        cache: QueryEmbeddingCache | None = None,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    ) -> None:
        if store is None and (embeddings_path is None or index_path is None):
            raise ValueError("Provide either a store or both embeddings_path and index_path")
        self._embeddings = embeddings
        self._database_path = Path(database_path)
        self._store = (
            store if store is not None else EmbeddingStore.load(embeddings_path, index_path)
        )
        self._config = config or EmbeddingConfig()
        self._cache = (
            cache if cache is not None else shared_query_cache(self._config.cache_key_chars)
        )
        self._max_output_chars = max_output_chars
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def store(self) -> EmbeddingStore:
        return self._store

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = open_readonly_database(self._database_path)
            return self._conn

    # -- operations -----------------------------------------------------------

    def search_similar(self, params: SearchSimilarInput) -> str:
        store = self.store
        query_vector = self._cache.get_or_embed(params.query, self._embeddings)
        if len(query_vector) != store.dimension:
            raise ToolExecutionError(
                f"Query embedding has dimension {len(query_vector)}, "
                f"stored vectors have {store.dimension}",
                tool_name="searchSimilar",
            )

        wanted = _PARTITIONS[params.type or "all"]
        items: list[EmbeddingItem] = [
            item for item in store.items if wanted is None or item.type == wanted
        ]
        if not items:
            return "[]"

        sims = cosine_similarities(query_vector, store.vectors_for(items))
        top = rank_top_k(sims, params.limit or self._config.top_k)
        logger.debug("searchSimilar: %d candidates, top=%d", len(items), len(top))

        results = [
            {
                "type": items[i].type,
                "repo": items[i].repo,
                "number": items[i].number,
                "title": items[i].title,
                "similarity": f"{sims[i]:.4f}",
                "body_preview": items[i].body_preview,
            }
            for i in top
        ]
        return truncate_output(
            json.dumps(results, indent=2, ensure_ascii=False), self._max_output_chars
        )

    def get_context(self, params: GetContextInput) -> str:
        row = self.connection.execute(
            _CONTEXT_QUERIES[params.type], (params.repo, params.number)
        ).fetchone()
        if row is None:
            raise ToolExecutionError(
                f"No {params.type} found for {params.repo}#{params.number}",
                tool_name="getContext",
            )
        return truncate_output(
            json.dumps(dict(row), indent=2, default=str, ensure_ascii=False),
            self._max_output_chars,
        )

    # -- ToolAdapter ----------------------------------------------------------

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                "searchSimilar",
                "Search for issues or PRs semantically similar to a query using embeddings. "
                "This finds content that is conceptually related, not just keyword matches.",
                SearchSimilarInput,
                self.search_similar,
            ),
            ToolCapability(
                "getContext",
                "Get full details of an issue or PR by repo and number",
                GetContextInput,
                self.get_context,
            ),
        ]

    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
