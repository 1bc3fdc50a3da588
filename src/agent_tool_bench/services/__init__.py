"""Services: answer scoring and the evaluation harness."""

from agent_tool_bench.services.evaluation import (
    AgentRun,
    EvaluationHarness,
    EvaluationReport,
    EvaluationSummary,
    export_results,
    load_questions,
)
from agent_tool_bench.services.scoring import FactualityChoice, FactualityScorer

__all__ = [
    "AgentRun",
    "EvaluationHarness",
    "EvaluationReport",
    "EvaluationSummary",
    "FactualityChoice",
    "FactualityScorer",
    "export_results",
    "load_questions",
]
