"""Tests for the factuality scorer."""

from __future__ import annotations

from agent_tool_bench.infrastructure.config import ScorerConfig
from agent_tool_bench.services.scoring import SCORER_NAME, FactualityChoice, FactualityScorer
from tests.helpers.mock_llm import MockStructuredChatModel


def choice(letter: str, reasoning: str = "compared") -> FactualityChoice:
    return FactualityChoice(reasoning=reasoning, choice=letter)


def scorer_with(*responses, **config) -> tuple[FactualityScorer, MockStructuredChatModel]:
    model = MockStructuredChatModel(structured_responses=list(responses))
    return FactualityScorer(model, ScorerConfig(**config)), model


class TestChoiceScores:

    def test_superset_is_fully_correct(self) -> None:
        scorer, _ = scorer_with(choice("B", "adds detail"))
        result = scorer.score("How many?", "3 issues: #1, #2, #5", "3")
        assert result.name == SCORER_NAME
        assert result.score == 1.0
        assert result.metadata == {"choice": "B", "rationale": "adds detail"}

    def test_subset_is_partial(self) -> None:
        scorer, _ = scorer_with(choice("A"))
        assert scorer.score("q", "a", "b").score == 0.4

    def test_disagreement_is_zero(self) -> None:
        scorer, _ = scorer_with(choice("D"))
        result = scorer.score("q", "7", "3")
        assert result.score == 0.0
        assert not result.failed

    def test_equivalent_and_immaterial(self) -> None:
        scorer, _ = scorer_with(choice("C"), choice("E"))
        assert scorer.score("q", "a", "a").score == 1.0
        assert scorer.score("q", "a", "A.").score == 1.0

    def test_custom_weights(self) -> None:
        weights = {"A": 0.5, "B": 0.6, "C": 1.0, "D": 0.0, "E": 1.0}
        scorer, _ = scorer_with(choice("B"), choice_scores=weights)
        assert scorer.score("q", "a", "b").score == 0.6

    def test_dict_response_accepted(self) -> None:
        scorer, _ = scorer_with({"reasoning": "same", "choice": "C"})
        assert scorer.score("q", "a", "a").score == 1.0


class TestRetries:

    def test_recovers_after_failure(self) -> None:
        scorer, model = scorer_with(RuntimeError("rate limited"), choice("C"))
        result = scorer.score("q", "a", "a")
        assert result.score == 1.0
        assert model.call_count == 2

    def test_null_score_after_exhausting_retries(self) -> None:
        scorer, model = scorer_with(RuntimeError("rate limited"), max_retries=3)
        result = scorer.score("q", "a", "b")
        assert result.score is None
        assert result.failed
        assert result.metadata == {"error": "rate limited", "retries": 3}
        assert model.call_count == 3

    def test_unparseable_answer_retried(self) -> None:
        scorer, model = scorer_with(None, max_retries=2)
        result = scorer.score("q", "a", "b")
        assert result.score is None
        assert result.metadata["error"] == "Classifier returned no parseable choice"
        assert model.call_count == 2

    def test_callable(self) -> None:
        scorer, _ = scorer_with(choice("D"))
        assert scorer("q", "a", "b").score == 0.0
