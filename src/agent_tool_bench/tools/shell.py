"""The ``bash`` tool: one shell command per call, run in the sandbox.

Reads see the real corpus tree at the mount point; redirections write into
memory.  Each call gets a fresh interpreter (cwd and variables reset) but
the overlay is shared for the adapter's lifetime, so files written by one
call are readable by the next.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

from pydantic import BaseModel, Field

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.domain.exceptions import CommandTimeoutError
from agent_tool_bench.infrastructure.config import DEFAULT_MAX_OUTPUT_CHARS, ShellConfig
from agent_tool_bench.tools.base import ToolAdapter, ToolCapability, truncate_output
from agent_tool_bench.tools.sandbox import (
    COMMANDS,
    DEFAULT_MOUNT_POINT,
    ExecResult,
    Interpreter,
    OverlayFs,
)

logger = logging.getLogger(__name__)

SHELL_TRUNCATION_HINT = "Use head, grep, or more specific commands to narrow results."

_PROMPT_TEMPLATE = """You are a data analyst assistant that explores GitHub event data stored in a filesystem.

The data is organized as follows:
- repos/{{owner}}/{{repo}}/repo.json - Repository metadata
- repos/{{owner}}/{{repo}}/issues/{{number}}.json - Issue data with title, body, state, labels, comments
- repos/{{owner}}/{{repo}}/pulls/{{number}}.json - Pull request data with title, body, state, merged status, comments
- users/{{username}}.json - User data with activity counts

You have access to standard Unix tools via bash:
{commands}

Use these tools to explore the data and answer questions. Start by understanding the directory structure, then drill down to find specific information.

When searching, consider:
{hints}
- All files are in the working directory ({mount})"""

_HINTS = {
    "find": "- Use 'find' to locate files by pattern",
    "grep": "- Use 'grep -r' for recursive text search",
    "jq": "- Use 'jq' to extract specific JSON fields",
}


class BashInput(BaseModel):
    command: str = Field(description="The bash command to execute")


class ShellToolAdapter(ToolAdapter):
    """Single ``bash`` capability over an :class:`OverlayFs`.

    Parameters
    ----------
    root:
        Corpus ``filesystem`` directory, mounted read-only.
    config:
        Command subset, timeout and execution ceilings.
    max_output_chars:
        Ceiling applied to stdout and stderr separately.
    """

    agent_type = AgentType.BASH

    def __init__(
        self,
        root: str | Path,
        config: ShellConfig | None = None,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
        mount_point: str = DEFAULT_MOUNT_POINT,
    ) -> None:
        self._config = config or ShellConfig()
        self._config.validate()
        self._max_output_chars = max_output_chars
        self._fs = OverlayFs(root, mount_point)
        self._commands = {name: COMMANDS[name] for name in self._config.enabled_commands}

    @property
    def fs(self) -> OverlayFs:
        return self._fs

    @property
    def enabled_commands(self) -> list[str]:
        return list(self._commands)

    def _interpreter(self) -> Interpreter:
        return Interpreter(
            self._fs,
            self._commands,
            max_call_depth=self._config.max_call_depth,
            max_loop_iterations=self._config.max_loop_iterations,
            max_command_count=self._config.max_command_count,
        )

    def run_command(self, command: str) -> ExecResult:
        """Run *command* under the configured timeout.

        Raises
        ------
        CommandTimeoutError
            If the command does not finish in time.  The worker thread is
            told to stop and abandoned.
        ExecutionLimitError
            If an execution ceiling is exceeded.
        """
        cancel = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sandbox")
        future = executor.submit(self._interpreter().run, command, cancel)
        try:
            return future.result(timeout=self._config.timeout_ms / 1000)
        except FutureTimeoutError:
            cancel.set()
            logger.info("bash: command timed out after %dms", self._config.timeout_ms)
            raise CommandTimeoutError(self._config.timeout_ms, details={"command": command}) from None
        finally:
            executor.shutdown(wait=False)

    def bash(self, params: BashInput) -> str:
        result = self.run_command(params.command)
        return json.dumps(
            {
                "stdout": truncate_output(result.stdout, self._max_output_chars, SHELL_TRUNCATION_HINT),
                "stderr": truncate_output(result.stderr, self._max_output_chars, SHELL_TRUNCATION_HINT),
                "exit_code": result.exit_code,
            },
            indent=2,
            ensure_ascii=False,
        )

    # -- ToolAdapter ----------------------------------------------------------

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                "bash",
                "Execute a bash command in a sandboxed shell whose working directory "
                "holds the data. Available commands: "
                + ", ".join(self._commands)
                + ". Returns stdout, stderr and exit_code.",
                BashInput,
                self.bash,
            )
        ]

    def system_prompt(self) -> str:
        commands = "\n".join(f"- {c.name}: {c.description}" for c in self._commands.values())
        hints = "\n".join(hint for name, hint in _HINTS.items() if name in self._commands)
        return _PROMPT_TEMPLATE.format(
            commands=commands, hints=hints, mount=self._fs.mount_point
        )
