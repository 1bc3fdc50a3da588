"""Read-only access to the pre-built corpus.

The corpus exists in three shapes, all produced by an offline ETL stage:

* a document tree of JSON files (used directly by the filesystem and shell
  adapters through their root directory),
* a SQLite database (``repos, users, issues, pulls, comments, events``),
* a flat float32 vector file with a parallel JSON index.

Everything here opens artifacts read-only.  Nothing is locked: concurrent
invocations share the files without writer contention.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from agent_tool_bench.domain.exceptions import CorpusConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Relational store
# ---------------------------------------------------------------------------


def open_readonly_database(path: str | Path) -> sqlite3.Connection:
    """Open the SQLite corpus read-only.

    Uses a ``mode=ro`` URI so writes fail at the engine level, and
    ``PRAGMA query_only`` as a second guard.  Rows come back as
    ``sqlite3.Row`` so they serialize as dicts.
    """
    db_path = Path(path)
    if not db_path.is_file():
        raise CorpusConfigurationError(
            f"Database not found at {db_path}. Build the corpus first.",
            details={"path": str(db_path)},
        )
    conn = sqlite3.connect(
        f"{db_path.resolve().as_uri()}?mode=ro",
        uri=True,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA query_only = ON")
    return conn


def rows_to_dicts(rows: list[sqlite3.Row]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmbeddingItem:
    """Index metadata for one stored vector."""

    id: int
    type: str  # "issue" | "pull"
    repo: str
    number: int
    title: str
    body_preview: str | None
    offset: int


class EmbeddingStore:
    """Flat float32 vectors plus their index metadata.

    Each item's vector lives at ``offset * dimension`` in the flat buffer.
    Consistency is checked once at load time: a bad offset or a dimension
    mismatch is a configuration error, never a per-query error.

    Parameters
    ----------
    items:
        Index entries in index-file order.
    vectors:
        Flat ``float32`` array of length ``count * dimension``.
    dimension:
        Embedding dimensionality.
    """

    def __init__(
        self,
        items: list[EmbeddingItem],
        vectors: NDArray[np.float32],
        dimension: int,
    ) -> None:
        if dimension < 1:
            raise CorpusConfigurationError(f"Invalid embedding dimension {dimension}")
        if vectors.ndim != 1 or vectors.size % dimension != 0:
            raise CorpusConfigurationError(
                f"Vector buffer of {vectors.size} floats is not a multiple of "
                f"dimension {dimension}",
                details={"size": int(vectors.size), "dimension": dimension},
            )
        n_vectors = vectors.size // dimension
        for item in items:
            if not (0 <= item.offset < n_vectors):
                raise CorpusConfigurationError(
                    f"Embedding offset {item.offset} for {item.repo}#{item.number} "
                    f"is out of range (0..{n_vectors - 1})",
                    details={"offset": item.offset, "vectors": n_vectors},
                )
        self._items = list(items)
        self._dimension = dimension
        self._matrix = vectors.reshape(n_vectors, dimension)

    # -- loading -------------------------------------------------------------

    @classmethod
    def load(cls, embeddings_path: str | Path, index_path: str | Path) -> EmbeddingStore:
        """Load the vector file and its JSON index.

        Raises
        ------
        CorpusConfigurationError
            If either file is missing or the two disagree.
        """
        embeddings_path = Path(embeddings_path)
        index_path = Path(index_path)
        if not embeddings_path.is_file() or not index_path.is_file():
            raise CorpusConfigurationError(
                "Embeddings not found. Generate them before running the embedding agent.",
                details={"embeddings": str(embeddings_path), "index": str(index_path)},
            )

        try:
            index = json.loads(index_path.read_text(encoding="utf-8"))
            dimension = int(index["dimension"])
            items = [
                EmbeddingItem(
                    id=int(raw["id"]),
                    type=str(raw["type"]),
                    repo=str(raw["repo"]),
                    number=int(raw["number"]),
                    title=str(raw.get("title", "")),
                    body_preview=raw.get("body_preview"),
                    offset=int(raw["offset"]),
                )
                for raw in index["items"]
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise CorpusConfigurationError(
                f"Malformed embeddings index {index_path.name}: {exc!r}",
                details={"index": str(index_path)},
            ) from exc

        declared = index.get("count")
        if declared is not None and int(declared) != len(items):
            raise CorpusConfigurationError(
                f"Index declares {declared} items but lists {len(items)}",
            )

        vectors = np.fromfile(embeddings_path, dtype="<f4")
        store = cls(items, vectors, dimension)
        logger.info(
            "Loaded %d embeddings (%.1f MB)",
            len(items),
            embeddings_path.stat().st_size / 1024 / 1024,
        )
        return store

    # -- access --------------------------------------------------------------

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def items(self) -> list[EmbeddingItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def vectors_for(self, items: list[EmbeddingItem]) -> NDArray[np.float32]:
        """Return the ``(len(items), dimension)`` matrix for *items*."""
        offsets = np.fromiter((item.offset for item in items), dtype=np.int64, count=len(items))
        return self._matrix[offsets]
