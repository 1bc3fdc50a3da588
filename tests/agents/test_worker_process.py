"""Tests for the worker entry point, run in-process."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest

from agent_tool_bench.agents import worker
from agent_tool_bench.agents.protocol import MessageWriter
from agent_tool_bench.agents.worker import forwarding_callbacks, run_worker
from agent_tool_bench.domain.exceptions import StepLimitExceededError
from agent_tool_bench.domain.values import AgentResult, ProgressUpdate
from tests.helpers.mock_llm import ScriptedChatModel, ai_text, ai_tool_calls


def messages(stream: io.StringIO) -> list[dict[str, Any]]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestForwardingCallbacks:

    def test_each_event_becomes_a_message(self) -> None:
        out = io.StringIO()
        cb = forwarding_callbacks(MessageWriter(out))
        cb.on_text("Hi")
        cb.on_tool_call("query", {"sql": "SELECT 1"})
        cb.on_tool_result("query", "[]")
        cb.on_progress(ProgressUpdate(tool_calls=1, tokens=12))

        assert messages(out) == [
            {"type": "text", "chunk": "Hi"},
            {"type": "tool_call", "tool_name": "query", "args": {"sql": "SELECT 1"}},
            {"type": "tool_result", "tool_name": "query", "result": "[]"},
            {"type": "progress", "tool_calls": 1, "tokens": 12},
        ]


class TestRunWorker:

    def test_missing_parameters(self) -> None:
        out = io.StringIO()
        code = run_worker(MessageWriter(out), {"AGENT_TYPE": "fs"})
        assert code == 1
        (message,) = messages(out)
        assert message["type"] == "error"
        assert message["error_type"] == "ValueError"
        assert "AGENT_TYPE and AGENT_QUESTION must both be set" in message["error"]

    def test_done_message(self, monkeypatch: pytest.MonkeyPatch, corpus_dir: Path) -> None:
        seen: dict[str, Any] = {}

        def fake_run(agent_type, question, callbacks, *, config):
            seen.update(agent_type=agent_type, question=question, config=config)
            callbacks.on_text("forty-two")
            return AgentResult(answer="forty-two", latency_ms=5, tokens=9, tool_calls=0)

        monkeypatch.setattr(worker, "run_agent_type", fake_run)
        out = io.StringIO()
        env = {"AGENT_TYPE": "sql", "AGENT_QUESTION": "Meaning?", "DATA_DIR": str(corpus_dir),
               "MAX_STEPS": "4"}
        assert run_worker(MessageWriter(out), env) == 0

        assert messages(out) == [
            {"type": "text", "chunk": "forty-two"},
            {
                "type": "done",
                "result": {"answer": "forty-two", "latency_ms": 5, "tokens": 9, "tool_calls": 0},
            },
        ]
        assert seen["agent_type"] == "sql"
        assert seen["question"] == "Meaning?"
        assert seen["config"].loop.max_steps == 4
        assert seen["config"].corpus.root == corpus_dir.resolve()

    def test_step_limit_reported_by_type(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_run(*args, **kwargs):
            raise StepLimitExceededError(20)

        monkeypatch.setattr(worker, "run_agent_type", fake_run)
        out = io.StringIO()
        assert run_worker(MessageWriter(out), {"AGENT_TYPE": "bash", "AGENT_QUESTION": "q"}) == 1
        (message,) = messages(out)
        assert message == {
            "type": "error",
            "error": "Agent reached maximum 20 steps without producing a final answer",
            "error_type": "StepLimitExceededError",
        }

    def test_unknown_agent(self) -> None:
        out = io.StringIO()
        assert run_worker(MessageWriter(out), {"AGENT_TYPE": "ruby", "AGENT_QUESTION": "q"}) == 1
        (message,) = messages(out)
        assert message["error_type"] == "KeyError"
        assert "Unknown agent type: ruby" in message["error"]

    def test_full_invocation_streams_events(
        self, monkeypatch: pytest.MonkeyPatch, corpus_dir: Path
    ) -> None:
        model = ScriptedChatModel(
            responses=[
                ai_tool_calls(("countFiles", {"pattern": "users/*.json"}), tokens=10),
                ai_text("Two users.", tokens=6),
            ]
        )
        monkeypatch.setattr("agent_tool_bench.agents.loop.create_chat_model", lambda _id: model)
        out = io.StringIO()
        env = {"AGENT_TYPE": "fs", "AGENT_QUESTION": "How many users?",
               "DATA_DIR": str(corpus_dir)}
        assert run_worker(MessageWriter(out), env) == 0

        sent = messages(out)
        kinds = [m["type"] for m in sent]
        assert "tool_result" in kinds
        assert kinds[-1] == "done"
        tool_result = next(m for m in sent if m["type"] == "tool_result")
        assert tool_result == {"type": "tool_result", "tool_name": "countFiles", "result": "2 files"}
        done = sent[-1]["result"]
        assert done["answer"] == "Two users."
        assert done["tool_calls"] == 1
        assert done["tokens"] == 16
