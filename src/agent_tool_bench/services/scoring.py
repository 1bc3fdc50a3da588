"""Factuality scoring of agent answers with an LLM classifier.

The classifier compares a submission with the expert answer and picks one
of five relations (subset, superset, equivalent, disagreement, immaterial
difference).  Each choice maps to a weight in ``ScorerConfig.choice_scores``.
Uses ``model.with_structured_output()`` so the choice arrives already parsed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from agent_tool_bench.domain.values import ScoreResult
from agent_tool_bench.infrastructure.config import DEFAULT_CHOICE_SCORES, ScorerConfig

logger = logging.getLogger(__name__)

SCORER_NAME = "Factuality"

# -- Structured output schema ------------------------------------------------


class FactualityChoice(BaseModel):
    """Structured output schema for the factuality classifier."""

    reasoning: str = Field(
        description="Step-by-step comparison of the submission with the expert answer"
    )
    choice: Literal["A", "B", "C", "D", "E"] = Field(
        description="The option that best describes the relation between the answers"
    )


# -- Prompt ------------------------------------------------------------------

_FACTUALITY_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are comparing a submitted answer to an expert answer on a given "
            "question. Reason step by step before choosing.",
        ),
        (
            "human",
            "Here is the data:\n"
            "[BEGIN DATA]\n"
            "**********\n"
            "[Question]: {question}\n"
            "**********\n"
            "[Expert]: {expected}\n"
            "**********\n"
            "[Submission]: {output}\n"
            "**********\n"
            "[END DATA]\n\n"
            "Compare the factual content of the submitted answer with the expert "
            "answer. Ignore any differences in style, grammar, or punctuation.\n"
            "The submitted answer may either be a subset or superset of the expert "
            "answer, or it may conflict with it. Determine which case applies. "
            "Answer the question by selecting one of the following options:\n"
            "(A) The submitted answer is a subset of the expert answer and is fully "
            "consistent with it.\n"
            "(B) The submitted answer is a superset of the expert answer and is fully "
            "consistent with it.\n"
            "(C) The submitted answer contains all the same details as the expert answer.\n"
            "(D) There is a disagreement between the submitted answer and the expert answer.\n"
            "(E) The answers differ, but these differences don't matter from the "
            "perspective of factuality.",
        ),
    ]
)


# -- FactualityScorer --------------------------------------------------------


class FactualityScorer:
    """Score an answer against a reference with an LLM classifier.

    Parameters
    ----------
    model:
        Chat model supporting ``with_structured_output``.
    config:
        Retry count and per-choice weights.
    prompt:
        Optional custom ``ChatPromptTemplate`` with ``question``,
        ``expected`` and ``output`` variables.
    """

    def __init__(
        self,
        model: BaseChatModel,
        config: ScorerConfig | None = None,
        prompt: ChatPromptTemplate | None = None,
    ) -> None:
        self.model = model
        self.config = config or ScorerConfig()
        self._prompt = prompt or _FACTUALITY_PROMPT
        self._chain = self._build_chain()

    def _build_chain(self) -> Any:
        structured_model = self.model.with_structured_output(FactualityChoice)
        return self._prompt | structured_model

    @property
    def choice_scores(self) -> Mapping[str, float]:
        return self.config.choice_scores or DEFAULT_CHOICE_SCORES

    def _classify(self, question: str, output: str, expected: str) -> FactualityChoice:
        result = self._chain.invoke(
            {"question": question, "output": output, "expected": expected}
        )
        if isinstance(result, Mapping):
            result = FactualityChoice.model_validate(result)
        if not isinstance(result, FactualityChoice):
            raise ValueError("Classifier returned no parseable choice")
        if result.choice not in self.choice_scores:
            raise ValueError(f"Classifier returned unknown choice {result.choice!r}")
        return result

    def score(self, question: str, output: str, expected: str = "") -> ScoreResult:
        """Score *output*; never raises.

        A classifier that raises or returns nothing parseable is retried up
        to ``config.max_retries`` attempts in total; after that the result
        carries ``score=None`` and the last error.
        """
        last_error = "Unknown error after retries"
        for attempt in range(1, self.config.max_retries + 1):
            try:
                choice = self._classify(question, output, expected)
            except Exception as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "FactualityScorer: attempt %d/%d failed: %s",
                    attempt,
                    self.config.max_retries,
                    last_error,
                )
                continue
            return ScoreResult(
                name=SCORER_NAME,
                score=float(self.choice_scores[choice.choice]),
                metadata={"choice": choice.choice, "rationale": choice.reasoning},
            )

        return ScoreResult(
            name=SCORER_NAME,
            score=None,
            metadata={"error": last_error, "retries": self.config.max_retries},
        )

    __call__ = score
