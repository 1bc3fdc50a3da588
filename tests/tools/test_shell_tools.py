"""Tests for the sandboxed ``bash`` tool."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from agent_tool_bench.domain.exceptions import CommandTimeoutError, ExecutionLimitError
from agent_tool_bench.infrastructure.config import ShellConfig
from agent_tool_bench.tools.sandbox import (
    COMMANDS,
    CommandContext,
    ExecutionCancelled,
    Interpreter,
    OverlayFs,
    ShellCommand,
)
from agent_tool_bench.tools.shell import BashInput, ShellToolAdapter


@pytest.fixture
def shell(fs_root: Path) -> ShellToolAdapter:
    return ShellToolAdapter(fs_root)


def out(shell: ShellToolAdapter, command: str) -> str:
    return shell.run_command(command).stdout


class TestBashTool:

    def test_result_is_json(self, shell: ShellToolAdapter) -> None:
        data = json.loads(shell.bash(BashInput(command="pwd")))
        assert data == {"stdout": "/workspace\n", "stderr": "", "exit_code": 0}

    def test_single_capability(self, shell: ShellToolAdapter) -> None:
        assert shell.registry().names == ["bash"]

    def test_registry_dispatch(self, shell: ShellToolAdapter) -> None:
        data = json.loads(shell.registry().execute("bash", {"command": "ls"}))
        assert data["stdout"] == "repos\nusers\n"

    def test_unknown_command(self, shell: ShellToolAdapter) -> None:
        result = shell.run_command("python --version")
        assert result.stdout == ""
        assert result.stderr == "bash: python: command not found\n"
        assert result.exit_code == 127

    def test_output_truncated(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, max_output_chars=10)
        data = json.loads(shell.bash(BashInput(command="cat users/alice.json")))
        assert data["stdout"].startswith('{\n  "id": \n\n[OUTPUT TRUNCATED')
        assert "[OUTPUT TRUNCATED: showing 10 of" in data["stdout"]
        assert data["stdout"].endswith(
            "Use head, grep, or more specific commands to narrow results.]"
        )

    def test_limit_error_becomes_error_text(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(max_loop_iterations=2))
        result = shell.registry().execute(
            "bash", {"command": "for i in a b c; do echo $i; done"}
        )
        assert result == "Error: Execution limit exceeded: loop iterations (max 2)"


class TestCommandSubsets:

    def test_default_is_all(self, shell: ShellToolAdapter) -> None:
        assert shell.enabled_commands == [
            "ls", "find", "grep", "cat", "head", "tail", "wc", "jq", "sort", "uniq",
        ]

    def test_core_only_rejects_cat(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(tool_set="core-only"))
        result = shell.run_command("cat users/alice.json")
        assert result.exit_code == 127
        assert "cat: command not found" in result.stderr

    def test_builtins_always_available(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(tool_set="core-only"))
        assert out(shell, "echo hi && pwd") == "hi\n/workspace\n"

    def test_explicit_whitelist(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(commands=("ls", "jq")))
        assert shell.enabled_commands == ["ls", "jq"]
        assert shell.run_command("grep x users/bob.json").exit_code == 127

    def test_prompt_lists_enabled_commands(self, fs_root: Path) -> None:
        prompt = ShellToolAdapter(fs_root, ShellConfig(tool_set="core-only")).system_prompt()
        assert "- grep: Search for patterns in files" in prompt
        assert "jq" not in prompt
        assert "(/workspace)" in prompt

    def test_unknown_tool_set_rejected(self, fs_root: Path) -> None:
        with pytest.raises(ValueError, match="tool_set"):
            ShellToolAdapter(fs_root, ShellConfig(tool_set="everything"))


class TestOverlay:

    def test_writes_persist_between_calls(self, shell: ShellToolAdapter, fs_root: Path) -> None:
        shell.run_command("echo hello > notes.txt")
        assert out(shell, "cat notes.txt") == "hello\n"
        assert not (fs_root / "notes.txt").exists()
        assert shell.fs.written == {"/workspace/notes.txt": "hello\n"}

    def test_append(self, shell: ShellToolAdapter) -> None:
        assert out(shell, "echo a > f.txt; echo b >> f.txt; cat f.txt") == "a\nb\n"

    def test_written_file_shadows_real_file(self, shell: ShellToolAdapter, fs_root: Path) -> None:
        shell.run_command("echo '{}' > users/alice.json")
        assert out(shell, "cat users/alice.json") == "{}\n"
        assert "alice" in (fs_root / "users" / "alice.json").read_text(encoding="utf-8")

    def test_written_file_listed(self, shell: ShellToolAdapter) -> None:
        shell.run_command("echo x > users/carol.json")
        assert out(shell, "ls users") == "alice.json\nbob.json\ncarol.json\n"

    def test_write_outside_mount_denied(self, shell: ShellToolAdapter) -> None:
        result = shell.run_command("echo x > /tmp/x")
        assert result.exit_code == 1
        assert result.stderr == "bash: /tmp/x: Permission denied\n"

    def test_write_onto_directory(self, shell: ShellToolAdapter) -> None:
        result = shell.run_command("echo x > repos")
        assert result.stderr == "bash: repos: Is a directory\n"

    def test_read_outside_mount(self, shell: ShellToolAdapter) -> None:
        result = shell.run_command("cat ../../etc/passwd")
        assert result.exit_code == 1
        assert result.stderr == "cat: ../../etc/passwd: No such file or directory\n"

    def test_root_shows_only_mount(self, shell: ShellToolAdapter) -> None:
        assert out(shell, "ls /") == "workspace\n"

    def test_cwd_and_variables_reset_per_call(self, shell: ShellToolAdapter) -> None:
        shell.run_command("cd repos; X=1")
        assert out(shell, "pwd; echo \"[$X]\"") == "/workspace\n[]\n"


class TestTimeout:

    def test_timeout_raises_and_cancels(self, fs_root: Path, monkeypatch) -> None:
        seen: list[threading.Event] = []

        class SlowInterpreter:
            def run(self, command: str, cancel: threading.Event):
                seen.append(cancel)
                cancel.wait(5)
                raise ExecutionCancelled()

        shell = ShellToolAdapter(fs_root, ShellConfig(timeout_ms=50))
        monkeypatch.setattr(shell, "_interpreter", lambda: SlowInterpreter())
        with pytest.raises(CommandTimeoutError, match="Command timed out after 50ms"):
            shell.run_command("ls")
        assert seen[0].is_set()

    def test_timeout_is_error_text(self, fs_root: Path, monkeypatch) -> None:
        class SlowInterpreter:
            def run(self, command: str, cancel: threading.Event):
                cancel.wait(5)
                raise ExecutionCancelled()

        shell = ShellToolAdapter(fs_root, ShellConfig(timeout_ms=20))
        monkeypatch.setattr(shell, "_interpreter", lambda: SlowInterpreter())
        assert shell.registry().execute("bash", {"command": "ls"}) == (
            "Error: Command timed out after 20ms"
        )

    def test_cancelled_command_does_not_write(self, fs_root: Path) -> None:
        fs = OverlayFs(fs_root)
        cancel = threading.Event()

        def produce(ctx: CommandContext, args: list[str]) -> int:
            cancel.set()
            ctx.write("late output\n")
            return 0

        commands = {**COMMANDS, "produce": ShellCommand("produce", "Emit a line", produce)}
        with pytest.raises(ExecutionCancelled):
            Interpreter(fs, commands).run("produce > late.txt", cancel)
        assert fs.written == {}


class TestOverlayConcurrency:

    def test_concurrent_appends_are_not_lost(self, fs_root: Path) -> None:
        fs = OverlayFs(fs_root)
        target = "/workspace/log.txt"

        def append_lines(worker: int) -> None:
            for i in range(200):
                fs.write_text(target, f"{worker}-{i}\n", append=True)

        threads = [threading.Thread(target=append_lines, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = fs.read_text(target).splitlines()
        assert len(lines) == 1600
        assert len(set(lines)) == 1600

    def test_listing_while_writing(self, fs_root: Path) -> None:
        fs = OverlayFs(fs_root)
        errors: list[BaseException] = []
        done = threading.Event()

        def list_repeatedly() -> None:
            try:
                while not done.is_set():
                    fs.listdir("/workspace/users")
            except BaseException as exc:
                errors.append(exc)

        reader = threading.Thread(target=list_repeatedly)
        reader.start()
        try:
            for i in range(500):
                fs.write_text(f"/workspace/users/new-{i}.json", "{}")
        finally:
            done.set()
            reader.join()

        assert errors == []
        assert len(fs.listdir("/workspace/users")) == 502


class TestExecutionLimits:

    def test_call_depth(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(max_call_depth=1))
        assert out(shell, "bash -c 'echo one'") == "one\n"
        with pytest.raises(ExecutionLimitError, match="call depth"):
            shell.run_command("bash -c 'bash -c \"echo two\"'")

    def test_command_count(self, fs_root: Path) -> None:
        shell = ShellToolAdapter(fs_root, ShellConfig(max_command_count=3))
        with pytest.raises(ExecutionLimitError, match="command count"):
            shell.run_command("echo 1; echo 2; echo 3; echo 4")
