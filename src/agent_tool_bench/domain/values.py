"""Value objects for agent-tool-bench.

All types here are frozen dataclasses, immutable and compared by value.
``Question`` is loaded once per process; ``AgentResult`` is the only artifact
that survives an agent invocation; ``ScoreResult`` is produced per question
by the scorer.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Question
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Question:
    """One benchmark question with its reference answer.

    Identity is the ``id`` field; two questions with the same id are the
    same question even if other fields differ.
    """

    id: str
    text: str
    category: str = ""
    difficulty: str = ""
    reference_answer: str = ""
    notes: str = ""

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Question):
            return NotImplemented
        return self.id == other.id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Question:
        """Build a question from a question-file record.

        The question text lives under ``question`` in the dataset; ``text``
        is accepted as an alias.
        """
        if "id" not in data:
            raise ValueError(f"Question record is missing 'id': {dict(data)!r}")
        text = data.get("question", data.get("text"))
        if not text:
            raise ValueError(f"Question {data['id']!r} has no question text")
        return cls(
            id=str(data["id"]),
            text=str(text),
            category=str(data.get("category", "")),
            difficulty=str(data.get("difficulty", "")),
            reference_answer=str(data.get("reference_answer", "")),
            notes=str(data.get("notes", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.text,
            "category": self.category,
            "difficulty": self.difficulty,
            "reference_answer": self.reference_answer,
            "notes": self.notes,
        }


# ---------------------------------------------------------------------------
# AgentResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentResult:
    """Final output of one agent invocation."""

    answer: str
    latency_ms: int
    tokens: int
    tool_calls: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "latency_ms": self.latency_ms,
            "tokens": self.tokens,
            "tool_calls": self.tool_calls,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AgentResult:
        return cls(
            answer=str(data.get("answer", "")),
            latency_ms=int(data.get("latency_ms", 0)),
            tokens=int(data.get("tokens", 0)),
            tool_calls=int(data.get("tool_calls", 0)),
        )


# ---------------------------------------------------------------------------
# ProgressUpdate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressUpdate:
    """Running totals reported to progress sinks."""

    tool_calls: int = 0
    tokens: int = 0


# ---------------------------------------------------------------------------
# ScoreResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreResult:
    """Correctness score for one answer.

    ``score`` is ``None`` when the scorer itself failed; callers must keep
    that apart from a low score (e.g. exclude it from averages).
    """

    name: str
    score: float | None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.score is None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "score": self.score, "metadata": dict(self.metadata)}
