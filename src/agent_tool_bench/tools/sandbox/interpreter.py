"""Executes parsed sandbox scripts against an :class:`OverlayFs`.

One ``Interpreter`` serves one tool adapter.  Every ``run`` starts in the
mount point with a fresh environment; files written by earlier runs stay
visible because the overlay is shared.

Ceilings (nested ``bash -c`` depth, total loop iterations, total simple
commands) are counted per ``run`` and raise :class:`ExecutionLimitError`,
which fails the whole call.  A cancel event set from another thread stops
the run at the next command or loop iteration.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from agent_tool_bench.domain.exceptions import CommandNotAllowedError, ExecutionLimitError
from agent_tool_bench.tools.sandbox.commands import (
    DEV_NULL,
    CommandContext,
    ShellCommand,
    UsageError,
    describe_os_error,
)
from agent_tool_bench.tools.sandbox.overlay import OverlayFs, has_magic
from agent_tool_bench.tools.sandbox.parser import (
    DOUBLE,
    LITERAL,
    RAW,
    AndOr,
    ForLoop,
    Pipeline,
    Redirect,
    Script,
    ShellSyntaxError,
    SimpleCommand,
    Word,
    parse,
)

logger = logging.getLogger(__name__)

BUILTINS: dict[str, str] = {
    "echo": "Print arguments",
    "pwd": "Print working directory",
    "cd": "Change directory",
    "true": "Exit with status 0",
    "false": "Exit with status 1",
    "bash": "Run a script with -c",
    "sh": "Run a script with -c",
}

_VAR_RE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*)|([?#0-9]))")
_ASSIGNMENT_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=")


class ExecutionCancelled(Exception):
    """The run was abandoned by its caller (timeout)."""


@dataclass(frozen=True)
class ExecResult:
    stdout: str
    stderr: str
    exit_code: int

    def to_dict(self) -> dict[str, Any]:
        return {"stdout": self.stdout, "stderr": self.stderr, "exit_code": self.exit_code}


def _glob_escape(text: str) -> str:
    return re.sub(r"([*?\[])", r"[\1]", text)


class Interpreter:
    """Shell interpreter bound to an overlay and a command whitelist.

    Parameters
    ----------
    fs:
        Overlay the scripts see.
    commands:
        Enabled commands by name.  Builtins are always available.
    max_call_depth, max_loop_iterations, max_command_count:
        Per-run execution ceilings.
    """

    def __init__(
        self,
        fs: OverlayFs,
        commands: Mapping[str, ShellCommand],
        *,
        max_call_depth: int = 8,
        max_loop_iterations: int = 1_000,
        max_command_count: int = 1_000,
    ) -> None:
        self._fs = fs
        self._commands = dict(commands)
        self._max_call_depth = max_call_depth
        self._max_loop_iterations = max_loop_iterations
        self._max_command_count = max_command_count
        self._builtins: dict[str, Callable[[CommandContext, list[str]], int]] = {
            "echo": self._echo,
            "pwd": self._pwd,
            "cd": self._cd,
            "true": lambda ctx, args: 0,
            "false": lambda ctx, args: 1,
            "bash": self._bash,
            "sh": self._bash,
        }
        self._reset(None)

    @property
    def fs(self) -> OverlayFs:
        return self._fs

    @property
    def cwd(self) -> str:
        return self._cwd

    def _reset(self, cancel_event: threading.Event | None) -> None:
        self._cwd = self._fs.mount_point
        self._env: dict[str, str] = {"HOME": self._fs.mount_point, "PWD": self._cwd}
        self._last_status = 0
        self._depth = 0
        self._loop_iterations = 0
        self._command_count = 0
        self._stderr_stack: list[list[str]] = [[]]
        self._cancel_event = cancel_event

    # -- entry point ------------------------------------------------------------

    def run(self, source: str, cancel_event: threading.Event | None = None) -> ExecResult:
        """Execute *source* and return its captured output.

        Syntax errors are reported like bash does (stderr, status 2).

        Raises
        ------
        ExecutionLimitError
            If a ceiling is exceeded.
        ExecutionCancelled
            If *cancel_event* is set while running.
        """
        self._reset(cancel_event)
        try:
            script = parse(source)
        except ShellSyntaxError as exc:
            return ExecResult("", f"bash: {exc}\n", 2)
        stdout, status = self._exec_script(script, "")
        return ExecResult(stdout, "".join(self._stderr_stack[0]), status)

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise ExecutionCancelled()

    # -- structure ------------------------------------------------------------

    def _exec_script(self, script: Script, stdin: str) -> tuple[str, int]:
        out: list[str] = []
        status = 0
        for item in script.items:
            text, status = self._exec_and_or(item, stdin)
            out.append(text)
        return "".join(out), status

    def _exec_and_or(self, node: AndOr, stdin: str) -> tuple[str, int]:
        out, status = self._exec_pipeline(node.first, stdin)
        chunks = [out]
        for op, pipeline in node.rest:
            if (op == "&&") == (status == 0):
                out, status = self._exec_pipeline(pipeline, stdin)
                chunks.append(out)
        return "".join(chunks), status

    def _exec_pipeline(self, pipeline: Pipeline, stdin: str) -> tuple[str, int]:
        data, status = stdin, 0
        for command in pipeline.commands:
            self._check_cancelled()
            if isinstance(command, ForLoop):
                data, status = self._with_redirects(
                    command.redirects, data, lambda s, c=command: self._exec_for(c, s)
                )
            else:
                data, status = self._exec_simple(command, data)
        self._last_status = status
        return data, status

    def _exec_for(self, loop: ForLoop, stdin: str) -> tuple[str, int]:
        items = [field for word in loop.items for field in self._expand_word(word)]
        out: list[str] = []
        status = 0
        for item in items:
            self._loop_iterations += 1
            if self._loop_iterations > self._max_loop_iterations:
                raise ExecutionLimitError("loop iterations", self._max_loop_iterations)
            self._check_cancelled()
            self._env[loop.variable] = item
            text, status = self._exec_script(loop.body, stdin)
            out.append(text)
        return "".join(out), status

    def _exec_simple(self, cmd: SimpleCommand, stdin: str) -> tuple[str, int]:
        words = list(cmd.words)
        assignments: dict[str, str] = {}
        while words and words[0].segments[0].mode == RAW and _ASSIGNMENT_RE.match(
            words[0].segments[0].text
        ):
            name, _, value = self._expand_string(words.pop(0)).partition("=")
            assignments[name] = value

        argv = [field for word in words for field in self._expand_word(word)]
        if not argv:
            self._env.update(assignments)
            return self._with_redirects(cmd.redirects, stdin, lambda s: ("", 0))

        self._command_count += 1
        if self._command_count > self._max_command_count:
            raise ExecutionLimitError("command count", self._max_command_count)

        saved_env = dict(self._env) if assignments else None
        self._env.update(assignments)
        try:
            return self._with_redirects(
                cmd.redirects, stdin, lambda s: self._invoke(argv[0], argv[1:], s)
            )
        finally:
            if saved_env is not None:
                self._env = saved_env

    def _invoke(self, name: str, args: list[str], stdin: str) -> tuple[str, int]:
        ctx = CommandContext(
            fs=self._fs,
            cwd=self._cwd,
            stdin=stdin,
            env=self._env,
            stderr=self._stderr_stack[-1],
            check_cancelled=self._check_cancelled,
        )
        try:
            fn = self._lookup(name)
        except CommandNotAllowedError as exc:
            ctx.error(f"bash: {exc}")
            return "", 127
        try:
            status = fn(ctx, args)
        except UsageError as exc:
            ctx.error(str(exc))
            status = 2
        except OSError as exc:
            target = exc.filename or (args[0] if args else "")
            ctx.error(f"{name}: {target}: {describe_os_error(exc)}")
            status = 1
        logger.debug("sandbox: %s %s -> %d", name, args, status)
        return "".join(ctx.stdout), status

    def _lookup(self, name: str) -> Callable[[CommandContext, list[str]], int]:
        if name in self._builtins:
            return self._builtins[name]
        command = self._commands.get(name)
        if command is None:
            raise CommandNotAllowedError(name)
        return command.run

    # -- redirections ---------------------------------------------------------

    def _with_redirects(
        self,
        redirects: list[Redirect],
        stdin: str,
        body: Callable[[str], tuple[str, int]],
    ) -> tuple[str, int]:
        if not redirects:
            return body(stdin)

        out_file: tuple[str, bool] | None = None
        err_file: tuple[str, bool] | None = None
        err_to_out = False
        out_to_err = False
        for redirect in redirects:
            target = self._expand_string(redirect.target)
            if redirect.op == "<":
                try:
                    stdin = "" if target == DEV_NULL else self._fs.read_text(
                        self._fs.resolve(target, self._cwd)
                    )
                except OSError as exc:
                    self._stderr_stack[-1].append(f"bash: {target}: {describe_os_error(exc)}\n")
                    return "", 1
            elif redirect.op == ">&":
                if redirect.fd == 2 and target == "1":
                    err_to_out = True
                elif redirect.fd == 1 and target == "2":
                    out_to_err = True
            elif redirect.op == "&>":
                out_file = (target, False)
                err_to_out = True
            elif redirect.fd == 2:
                err_file = (target, redirect.op == ">>")
            else:
                out_file = (target, redirect.op == ">>")

        self._stderr_stack.append([])
        try:
            out, status = body(stdin)
        finally:
            err = "".join(self._stderr_stack.pop())

        if err_to_out:
            out, err = out + err, ""
        if out_to_err:
            out, err = "", err + out
        if out_file is not None:
            status = self._write_redirect(out_file, out) or status
            out = ""
        if err_file is not None:
            status = self._write_redirect(err_file, err) or status
            err = ""
        if err:
            self._stderr_stack[-1].append(err)
        return out, status

    def _write_redirect(self, target: tuple[str, bool], data: str) -> int:
        path, append = target
        if path == DEV_NULL:
            return 0
        self._check_cancelled()
        try:
            self._fs.write_text(self._fs.resolve(path, self._cwd), data, append=append)
        except OSError as exc:
            self._stderr_stack[-1].append(f"bash: {path}: {describe_os_error(exc)}\n")
            return 1
        return 0

    # -- expansion ------------------------------------------------------------

    def _variable(self, match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2) or match.group(3)
        if name == "?":
            return str(self._last_status)
        if name == "#":
            return "0"
        return self._env.get(name, "")

    def _expand_string(self, word: Word) -> str:
        """Variables substituted, no splitting, no globbing."""
        return "".join(
            seg.text if seg.mode == LITERAL else _VAR_RE.sub(self._variable, seg.text)
            for seg in word.segments
        )

    def _expand_word(self, word: Word) -> list[str]:
        """Expand one word into zero or more arguments."""
        fields: list[list[tuple[str, bool]]] = [[]]
        quoted = False
        for index, seg in enumerate(word.segments):
            if seg.mode == LITERAL:
                fields[-1].append((seg.text, False))
                quoted = True
                continue
            if seg.mode == DOUBLE:
                fields[-1].append((_VAR_RE.sub(self._variable, seg.text), False))
                quoted = True
                continue
            text = seg.text
            if index == 0 and (text == "~" or text.startswith("~/")):
                fields[-1].append((self._env.get("HOME", ""), False))
                text = text[1:]
            pos = 0
            for match in _VAR_RE.finditer(text):
                fields[-1].append((text[pos:match.start()], True))
                for n, part in enumerate(re.split(r"\s+", self._variable(match))):
                    if n:
                        fields.append([])
                    if part:
                        fields[-1].append((part, True))
                pos = match.end()
            fields[-1].append((text[pos:], True))

        results: list[str] = []
        for pieces in fields:
            text = "".join(t for t, _ in pieces)
            if not text and not quoted:
                continue
            if any(globbable and has_magic(t) for t, globbable in pieces):
                pattern = "".join(t if g else _glob_escape(t) for t, g in pieces)
                results.extend(self._fs.glob(pattern, self._cwd) or [text])
            else:
                results.append(text)
        return results

    # -- builtins -------------------------------------------------------------

    def _echo(self, ctx: CommandContext, args: list[str]) -> int:
        newline, escapes = True, False
        while args and re.fullmatch(r"-[neE]+", args[0]):
            newline = newline and "n" not in args[0]
            escapes = "e" in args[0] or (escapes and "E" not in args[0])
            args = args[1:]
        text = " ".join(args)
        if escapes:
            text = text.replace("\\n", "\n").replace("\\t", "\t")
        ctx.write(text + ("\n" if newline else ""))
        return 0

    def _pwd(self, ctx: CommandContext, args: list[str]) -> int:
        ctx.write(self._cwd + "\n")
        return 0

    def _cd(self, ctx: CommandContext, args: list[str]) -> int:
        target = args[0] if args else self._env.get("HOME", self._fs.mount_point)
        vpath = self._fs.resolve(target, self._cwd)
        if not self._fs.exists(vpath):
            ctx.error(f"bash: cd: {target}: No such file or directory")
            return 1
        if not self._fs.is_dir(vpath):
            ctx.error(f"bash: cd: {target}: Not a directory")
            return 1
        self._cwd = vpath
        self._env["PWD"] = vpath
        return 0

    def _bash(self, ctx: CommandContext, args: list[str]) -> int:
        if args and args[0] == "-c":
            if len(args) < 2:
                ctx.error("bash: -c: option requires an argument")
                return 2
            source, stdin = args[1], ctx.stdin
        elif args:
            source, stdin = ctx.read(args[0]), ""
        else:
            source, stdin = ctx.stdin, ""

        if self._depth >= self._max_call_depth:
            raise ExecutionLimitError("call depth", self._max_call_depth)
        try:
            script = parse(source)
        except ShellSyntaxError as exc:
            ctx.error(f"bash: {exc}")
            return 2

        saved_cwd, saved_env = self._cwd, dict(self._env)
        self._depth += 1
        try:
            out, status = self._exec_script(script, stdin)
        finally:
            self._depth -= 1
            self._cwd, self._env = saved_cwd, saved_env
        ctx.write(out)
        return status
