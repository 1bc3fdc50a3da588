"""Evaluation harness: every variant on every question, scored.

Per question the selected variants run concurrently (one worker process
each); questions run one after another.  Successful answers are scored
with the factuality scorer, failed invocations are recorded with their
error and no score.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from statistics import fmean
from typing import Any

from agent_tool_bench.agents.isolation import run_agent_in_worker
from agent_tool_bench.agents.variants import list_variants
from agent_tool_bench.domain.exceptions import AgentToolBenchError
from agent_tool_bench.domain.values import AgentResult, Question, ScoreResult
from agent_tool_bench.infrastructure.event_bus import StreamCallbacks
from agent_tool_bench.infrastructure.tracing import run_traced
from agent_tool_bench.services.scoring import FactualityScorer

logger = logging.getLogger(__name__)

AgentRunner = Callable[[str, str, StreamCallbacks | None], Awaitable[AgentResult]]
CallbacksFactory = Callable[[str, Question], StreamCallbacks | None]


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


def load_questions(path: str | Path, limit: int | None = None) -> list[Question]:
    """Load the question file (a JSON array of question records)."""
    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)
    if not isinstance(records, list):
        raise ValueError(f"Question file {path} must contain a JSON array")
    questions = [Question.from_dict(r) for r in records]
    if limit is not None:
        questions = questions[:limit]
    logger.info("Loaded %d questions from %s", len(questions), path)
    return questions


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class AgentRun:
    """Outcome of one variant on one question."""

    question_id: str
    agent: str
    result: AgentResult | None = None
    score: ScoreResult | None = None
    error: str = ""
    error_type: str = ""

    @property
    def failed(self) -> bool:
        return self.result is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "agent": self.agent,
            "result": self.result.to_dict() if self.result else None,
            "score": self.score.to_dict() if self.score else None,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class EvaluationSummary:
    """Aggregates of one variant over all questions.

    ``mean_score`` averages non-null scores only; a scorer failure is
    neither a zero nor a success.
    """

    agent: str
    runs: int
    failures: int
    scored: int
    mean_score: float | None
    mean_latency_ms: float | None
    mean_tokens: float | None
    mean_tool_calls: float | None

    @classmethod
    def from_runs(cls, agent: str, runs: Sequence[AgentRun]) -> EvaluationSummary:
        ok = [r.result for r in runs if r.result is not None]
        scores = [r.score.score for r in runs if r.score is not None and r.score.score is not None]
        return cls(
            agent=agent,
            runs=len(runs),
            failures=len(runs) - len(ok),
            scored=len(scores),
            mean_score=fmean(scores) if scores else None,
            mean_latency_ms=fmean(r.latency_ms for r in ok) if ok else None,
            mean_tokens=fmean(r.tokens for r in ok) if ok else None,
            mean_tool_calls=fmean(r.tool_calls for r in ok) if ok else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent,
            "runs": self.runs,
            "failures": self.failures,
            "scored": self.scored,
            "mean_score": self.mean_score,
            "mean_latency_ms": self.mean_latency_ms,
            "mean_tokens": self.mean_tokens,
            "mean_tool_calls": self.mean_tool_calls,
        }


@dataclass
class EvaluationReport:
    """All runs of one evaluation, plus per-variant summaries."""

    agents: list[str]
    runs: list[AgentRun] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def runs_for(self, agent: str) -> list[AgentRun]:
        return [r for r in self.runs if r.agent == agent]

    @property
    def summaries(self) -> list[EvaluationSummary]:
        return [EvaluationSummary.from_runs(a, self.runs_for(a)) for a in self.agents]

    def to_dict(self) -> dict[str, Any]:
        return {
            "agents": list(self.agents),
            "metadata": dict(self.metadata),
            "summaries": [s.to_dict() for s in self.summaries],
            "runs": [r.to_dict() for r in self.runs],
        }


def export_results(report: EvaluationReport, path: str | Path) -> None:
    """Write *report* as indented JSON, creating parent directories."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as fh:
        json.dump(report.to_dict(), fh, indent=2, default=str)


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class EvaluationHarness:
    """Run variants over questions and score their answers.

    Parameters
    ----------
    runner:
        Coroutine function ``(agent_type, question, callbacks) ->
        AgentResult``; defaults to the process-isolated worker runner.
    scorer:
        Scores successful answers.  When ``None`` runs are left unscored.
    agents:
        Variant names to run; defaults to every registered variant.
    callbacks_factory:
        Builds a progress sink per ``(agent, question)``.
    """

    def __init__(
        self,
        runner: AgentRunner | None = None,
        scorer: FactualityScorer | None = None,
        agents: Sequence[str] | None = None,
        callbacks_factory: CallbacksFactory | None = None,
    ) -> None:
        self.runner = runner or run_agent_in_worker
        self.scorer = scorer
        self.agents = list(agents) if agents else list_variants()
        self._callbacks_factory = callbacks_factory

    async def _run_one(self, agent: str, question: Question) -> AgentRun:
        callbacks = self._callbacks_factory(agent, question) if self._callbacks_factory else None
        run = AgentRun(question_id=question.id, agent=agent)
        try:
            run.result = await self.runner(agent, question.text, callbacks)
        except AgentToolBenchError as exc:
            logger.warning("%s failed on %s: %s", agent, question.id, exc)
            run.error = str(exc)
            run.error_type = type(exc).__name__
            return run

        if self.scorer is not None:
            run.score = await asyncio.to_thread(
                self.scorer.score, question.text, run.result.answer, question.reference_answer
            )
        return run

    async def _traced_run(self, agent: str, question: Question) -> AgentRun:
        return await run_traced(
            f"eval-{agent}",
            self._run_one,
            agent,
            question,
            metadata={"agent": agent, "question_id": question.id},
        )

    async def evaluate_question(self, question: Question) -> list[AgentRun]:
        """Run every selected variant on *question* concurrently."""
        outcomes = await asyncio.gather(
            *(self._traced_run(agent, question) for agent in self.agents),
            return_exceptions=True,
        )
        runs: list[AgentRun] = []
        for agent, outcome in zip(self.agents, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error("%s raised on %s: %r", agent, question.id, outcome)
                outcome = AgentRun(
                    question_id=question.id,
                    agent=agent,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            runs.append(outcome)
        return runs

    async def run(self, questions: Sequence[Question]) -> EvaluationReport:
        report = EvaluationReport(agents=list(self.agents))
        for index, question in enumerate(questions, start=1):
            logger.info("Question %d/%d: %s", index, len(questions), question.id)
            report.runs.extend(await self.evaluate_question(question))
        return report

    def run_sync(self, questions: Sequence[Question]) -> EvaluationReport:
        return asyncio.run(self.run(questions))
