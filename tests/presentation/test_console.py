"""Tests for the rich console renderers."""

from __future__ import annotations

import io

from agent_tool_bench.domain.values import AgentResult, ScoreResult
from agent_tool_bench.presentation.console import DebugConsole, SummaryConsole
from agent_tool_bench.services.evaluation import AgentRun, EvaluationReport


class TestDebugConsole:

    def test_stream_and_result(self) -> None:
        out = io.StringIO()
        console = DebugConsole("sql", file=out)
        cb = console.callbacks()
        console.print_header("How many repos?")
        cb.on_tool_call("query", {"sql": "SELECT COUNT(*) FROM repos"})
        cb.on_tool_result("query", '[{"n": 2}]')
        cb.on_text("There are ")
        cb.on_text("[2] repos.")
        console.print_result(AgentResult(answer="There are [2] repos.", latency_ms=1500,
                                         tokens=1234, tool_calls=1))
        text = out.getvalue()
        assert "=== SQL Agent Debug ===" in text
        assert "TOOL CALL: query" in text
        assert '"sql": "SELECT COUNT(*) FROM repos"' in text
        assert "There are [2] repos." in text
        assert "Latency:    1.50s" in text
        assert "Tokens:     1,234" in text

    def test_long_results_previewed(self) -> None:
        out = io.StringIO()
        DebugConsole("fs", file=out).on_tool_result("readFile", "x" * 600)
        text = out.getvalue()
        assert text.count("x") == 500
        assert "..." in text

    def test_empty_answer(self) -> None:
        out = io.StringIO()
        DebugConsole("bash", file=out).print_result(AgentResult("", 0, 0, 0))
        assert "(no text response)" in out.getvalue()


class TestSummaryConsole:

    def test_report_table_and_failures(self) -> None:
        report = EvaluationReport(
            agents=["fs", "sql"],
            runs=[
                AgentRun("q1", "fs", AgentResult("2", 1000, 100, 2), ScoreResult("Factuality", 1.0)),
                AgentRun("q1", "sql", error="worker exited", error_type="WorkerError"),
            ],
        )
        out = io.StringIO()
        SummaryConsole(file=out).print_report(report)
        text = out.getvalue()
        assert "Evaluation Summary" in text
        assert "1.000" in text
        assert "Failures" in text
        assert "q1 sql: WorkerError: worker exited" in text
