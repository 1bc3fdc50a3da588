"""Rich console rendering for the debug and eval commands.

:class:`DebugConsole` streams one invocation (text, tool calls, result
previews) and prints its final result; :class:`SummaryConsole` renders
evaluation summaries as tables.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import IO, Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from agent_tool_bench.domain.values import AgentResult
from agent_tool_bench.infrastructure.event_bus import StreamCallbacks
from agent_tool_bench.services.evaluation import EvaluationReport, EvaluationSummary

AGENT_STYLES: dict[str, tuple[str, str]] = {
    "bash": ("Bash", "blue"),
    "fs": ("Filesystem", "green"),
    "sql": ("SQL", "yellow"),
    "embedding": ("Embedding", "magenta"),
}

PREVIEW_CHARS = 500


def _indent(text: str, prefix: str = "   ") -> str:
    return text.replace("\n", "\n" + prefix)


def _fmt(value: float | None, spec: str = ".3f") -> str:
    return "-" if value is None else format(value, spec)


# ---------------------------------------------------------------------------
# DebugConsole
# ---------------------------------------------------------------------------


class DebugConsole:
    """Live rendering of a single agent invocation.

    Parameters
    ----------
    agent:
        Variant name, used for the title and colour.
    file:
        Output stream.  Defaults to ``sys.stdout``.
    """

    def __init__(self, agent: str, file: IO[str] | None = None) -> None:
        self.agent = agent
        self.title, self.colour = AGENT_STYLES.get(agent, (agent, "cyan"))
        self._console = Console(file=file, highlight=False)

    @property
    def console(self) -> Console:
        return self._console

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_text=self.on_text,
            on_tool_call=self.on_tool_call,
            on_tool_result=self.on_tool_result,
        )

    # -- stream callbacks --------------------------------------------------

    def on_text(self, chunk: str) -> None:
        self._console.print(Text(chunk), end="")

    def on_tool_call(self, tool_name: str, args: Mapping[str, Any]) -> None:
        rendered = _indent(json.dumps(dict(args), indent=2, default=str))
        self._console.print()
        self._console.print(Text(f"TOOL CALL: {tool_name}", style="bold cyan"))
        self._console.print(Text(f"   Args: {rendered}", style="cyan"))

    def on_tool_result(self, tool_name: str, result: str) -> None:
        preview = result if len(result) <= PREVIEW_CHARS else result[:PREVIEW_CHARS] + "..."
        self._console.print()
        self._console.print(Text(f"RESULT ({tool_name}):", style="dim"))
        self._console.print(Text(f"   {_indent(preview)}", style="dim"))
        self._console.print()

    # -- framing -----------------------------------------------------------

    def print_header(self, question: str) -> None:
        self._console.print()
        self._console.print(Text(f"=== {self.title} Agent Debug ===", style=f"bold {self.colour}"))
        self._console.print()
        self._console.print(Text(f"Question: {question}", style="dim"))
        self._console.print()

    def print_result(self, result: AgentResult) -> None:
        self._console.print()
        self._console.print()
        self._console.print(Text("=== Final Result ===", style=f"bold {self.colour}"))
        self._console.print()
        if result.answer:
            self._console.print(Text(result.answer))
        else:
            self._console.print(Text("(no text response)", style="dim"))
        self._console.print()
        self._console.print(Text("-" * 33, style="dim"))
        self._console.print(Text(f"Latency:    {result.latency_ms / 1000:.2f}s", style="dim"))
        self._console.print(Text(f"Tool calls: {result.tool_calls}", style="dim"))
        self._console.print(Text(f"Tokens:     {result.tokens:,}", style="dim"))

    def print_error(self, error: BaseException) -> None:
        self._console.print()
        self._console.print()
        self._console.print(Text("=== Error ===", style="bold red"))
        self._console.print()
        self._console.print(Text(f"{type(error).__name__}: {error}", style="red"))


# ---------------------------------------------------------------------------
# SummaryConsole
# ---------------------------------------------------------------------------


class SummaryConsole:
    """Tables for evaluation results."""

    def __init__(self, file: IO[str] | None = None) -> None:
        self._console = Console(file=file, highlight=False)

    @property
    def console(self) -> Console:
        return self._console

    def summary_table(self, summaries: Sequence[EvaluationSummary]) -> Table:
        table = Table(title="Evaluation Summary", show_header=True, header_style="bold cyan")
        table.add_column("Agent", style="bold")
        table.add_column("Runs", justify="right")
        table.add_column("Failures", justify="right")
        table.add_column("Scored", justify="right")
        table.add_column("Mean score", justify="right")
        table.add_column("Latency (s)", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Tool calls", justify="right")

        scored = [s.mean_score for s in summaries if s.mean_score is not None]
        best = max(scored) if len(scored) > 1 else None

        for s in summaries:
            _, colour = AGENT_STYLES.get(s.agent, (s.agent, "white"))
            score = _fmt(s.mean_score)
            if best is not None and s.mean_score == best:
                score = f"[bold green]{score}[/bold green]"
            latency = None if s.mean_latency_ms is None else s.mean_latency_ms / 1000
            table.add_row(
                f"[{colour}]{s.agent}[/{colour}]",
                str(s.runs),
                f"[red]{s.failures}[/red]" if s.failures else "0",
                str(s.scored),
                score,
                _fmt(latency, ".2f"),
                _fmt(s.mean_tokens, ",.0f"),
                _fmt(s.mean_tool_calls, ".1f"),
            )
        return table

    def print_report(self, report: EvaluationReport) -> None:
        self._console.print()
        self._console.print(self.summary_table(report.summaries))

        failed = [r for r in report.runs if r.failed]
        if failed:
            self._console.print()
            self._console.print("[bold red]Failures[/bold red]")
            for run in failed:
                line = Text("  ")
                line.append(run.question_id, style="dim")
                line.append(f" {run.agent}: {run.error_type}: {run.error}")
                self._console.print(line)
        self._console.print()
