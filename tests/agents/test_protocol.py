"""Tests for the worker message protocol."""

from __future__ import annotations

import io
import json

from agent_tool_bench.agents.protocol import MessageWriter, decode_message, encode_message
from agent_tool_bench.domain.enums import MessageType


class TestEncode:

    def test_single_line_with_tag(self) -> None:
        line = encode_message(MessageType.TOOL_RESULT, tool_name="readFile", result="a\nb")
        assert line.endswith("\n")
        assert line.count("\n") == 1
        assert json.loads(line) == {"type": "tool_result", "tool_name": "readFile", "result": "a\nb"}

    def test_non_ascii_kept(self) -> None:
        line = encode_message(MessageType.TEXT, chunk="café")
        assert "café" in line


class TestDecode:

    def test_bytes_and_str(self) -> None:
        assert decode_message(b'{"type": "text", "chunk": "x"}\n') == {"type": "text", "chunk": "x"}
        assert decode_message('{"type": "done", "result": {}}') == {"type": "done", "result": {}}

    def test_blank_line(self) -> None:
        assert decode_message("   \n") is None

    def test_non_json_line(self) -> None:
        assert decode_message("Warning: deprecated module\n") is None

    def test_untagged_object(self) -> None:
        assert decode_message('{"chunk": "x"}') is None

    def test_json_array(self) -> None:
        assert decode_message("[1, 2]") is None


class TestMessageWriter:

    def test_lines_in_order(self) -> None:
        out = io.StringIO()
        writer = MessageWriter(out)
        writer.send(MessageType.TEXT, chunk="a")
        writer.send(MessageType.PROGRESS, tool_calls=1, tokens=3)
        decoded = [decode_message(line) for line in out.getvalue().splitlines()]
        assert decoded == [
            {"type": "text", "chunk": "a"},
            {"type": "progress", "tool_calls": 1, "tokens": 3},
        ]
