"""Command-line interface for agent-tool-bench.

Subcommands import their dependencies lazily so that ``agent-tool-bench
info`` stays fast.

Entry point
-----------
``main()`` is registered as a console script in ``pyproject.toml``::

    [project.scripts]
    agent-tool-bench = "agent_tool_bench.cli:main"

Usage examples::

    agent-tool-bench debug fs "which project has the most issues?"
    agent-tool-bench eval --agents sql fs --limit 5 --output results.json
    agent-tool-bench info
    agent-tool-bench --config bench.json eval --agents bash
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_QUESTIONS = "evals/questions.json"


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="agent-tool-bench",
        description=(
            "Benchmark tool-access strategies for LLM agents over GitHub "
            "activity data."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for stderr output. (default: WARNING)",
    )
    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="JSON config file; replaces the environment-variable configuration.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- debug -------------------------------------------------------------
    debug_parser = subparsers.add_parser(
        "debug",
        help="Run one agent on one question with live output.",
        description="Run a single agent in-process and stream its text and tool calls.",
    )
    debug_parser.add_argument("agent", nargs="?", help="Agent variant (bash, fs, sql, embedding).")
    debug_parser.add_argument("question", nargs="*", help="Question text.")

    # -- eval --------------------------------------------------------------
    eval_parser = subparsers.add_parser(
        "eval",
        help="Run and score agents over the question set.",
        description="Run the selected agents over every question and score the answers.",
    )
    eval_parser.add_argument(
        "--agents",
        nargs="+",
        default=None,
        help="Agent variants to evaluate. (default: all)",
    )
    eval_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only use the first N questions.",
    )
    eval_parser.add_argument(
        "--questions",
        default=DEFAULT_QUESTIONS,
        help=f"Question file. (default: {DEFAULT_QUESTIONS})",
    )
    eval_parser.add_argument(
        "--output",
        default=None,
        help="Write all runs and summaries to this JSON file.",
    )

    # -- info --------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show version, models and agent variants.",
        description="Display version, supported models, agent variants and configuration.",
    )

    return parser


# =========================================================================
# Subcommand handlers
# =========================================================================


def _usage_error(message: str) -> int:
    from agent_tool_bench.agents.variants import list_variants

    print(message, file=sys.stderr)
    print("Usage: agent-tool-bench debug <agent> <question>", file=sys.stderr)
    print(f"Agents: {', '.join(list_variants())}", file=sys.stderr)
    print(
        'Example: agent-tool-bench debug fs "which project has the most issues?"',
        file=sys.stderr,
    )
    return 1


def _cmd_debug(args: argparse.Namespace) -> int:
    """Handle the ``debug`` subcommand."""
    from agent_tool_bench.agents.loop import run_agent_type
    from agent_tool_bench.agents.variants import is_known_agent, list_variants
    from agent_tool_bench.infrastructure.tracing import flush_traces, run_traced
    from agent_tool_bench.presentation.console import DebugConsole

    question = " ".join(args.question or []).strip()
    if not args.agent or not question:
        return _usage_error("Missing agent or question.")
    if not is_known_agent(args.agent):
        print(f"Unknown agent: {args.agent}", file=sys.stderr)
        print(f"Available: {', '.join(list_variants())}", file=sys.stderr)
        return 1

    console = DebugConsole(args.agent)
    console.print_header(question)
    try:
        result = run_traced(
            f"debug-{args.agent}",
            run_agent_type,
            args.agent,
            question,
            console.callbacks(),
            metadata={"agent": args.agent},
        )
    except Exception as exc:
        logger.debug("debug run failed", exc_info=True)
        console.print_error(exc)
        return 0
    finally:
        flush_traces()

    console.print_result(result)
    return 0


def _cmd_eval(args: argparse.Namespace) -> int:
    """Handle the ``eval`` subcommand."""
    from agent_tool_bench.agents.variants import is_known_agent, list_variants
    from agent_tool_bench.infrastructure.config import BenchConfig
    from agent_tool_bench.infrastructure.models import create_scorer_model, get_model_from_env
    from agent_tool_bench.infrastructure.tracing import flush_traces
    from agent_tool_bench.presentation.console import SummaryConsole
    from agent_tool_bench.services.evaluation import (
        EvaluationHarness,
        export_results,
        load_questions,
    )
    from agent_tool_bench.services.scoring import FactualityScorer

    agents = args.agents or list_variants()
    unknown = [a for a in agents if not is_known_agent(a)]
    if unknown:
        print(f"Unknown agent(s): {', '.join(unknown)}", file=sys.stderr)
        print(f"Available: {', '.join(list_variants())}", file=sys.stderr)
        return 1

    config = BenchConfig.from_env()
    questions = load_questions(args.questions, args.limit)
    scorer = FactualityScorer(create_scorer_model(config.scorer.model), config.scorer)
    harness = EvaluationHarness(scorer=scorer, agents=agents)

    print(f"Evaluating {', '.join(agents)} on {len(questions)} questions...")
    try:
        report = harness.run_sync(questions)
    finally:
        flush_traces()
    report.metadata.update(
        {"model": get_model_from_env({"MODEL": config.model}), "questions": args.questions}
    )

    SummaryConsole().print_report(report)
    if args.output:
        export_results(report, args.output)
        print(f"Results written to {args.output}")
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from agent_tool_bench import __version__
    from agent_tool_bench.agents.variants import get_variant, list_variants
    from agent_tool_bench.infrastructure.config import BenchConfig
    from agent_tool_bench.infrastructure.models import (
        DEFAULT_MODEL,
        MODEL_CONFIG,
        get_model_from_env,
    )

    config = BenchConfig.from_env()

    print(f"agent-tool-bench v{__version__}")
    print()
    print("Agent variants:")
    for name in list_variants():
        variant = get_variant(name)
        print(f"  {name} -- {variant.max_steps(config)} steps")
    print()
    print(f"Models (default {DEFAULT_MODEL}, active {get_model_from_env()}):")
    for model_id, spec in MODEL_CONFIG.items():
        print(f"  {model_id} -- {spec.provider}:{spec.model_name}")
    print()
    print("Corpus:")
    print(f"  data dir:   {config.corpus.root}")
    print(f"  filesystem: {config.corpus.filesystem_dir}")
    print(f"  database:   {config.corpus.database_path}")
    print(f"  embeddings: {config.corpus.embeddings_path}")
    print()
    print(f"Shell commands: {', '.join(config.shell.enabled_commands)}")
    print(f"Scorer model:   {config.scorer.model}")
    return 0


# =========================================================================
# Main entry point
# =========================================================================


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.version:
        from agent_tool_bench import __version__

        print(f"agent-tool-bench {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.config:
        from agent_tool_bench.infrastructure.config import CONFIG_FILE_VAR

        os.environ[CONFIG_FILE_VAR] = str(Path(args.config).resolve())

    handlers: dict[str, Any] = {
        "debug": _cmd_debug,
        "eval": _cmd_eval,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
