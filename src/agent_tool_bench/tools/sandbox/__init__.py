"""In-process shell sandbox: overlay filesystem, parser, commands, interpreter."""

from agent_tool_bench.tools.sandbox.commands import COMMANDS, CommandContext, ShellCommand
from agent_tool_bench.tools.sandbox.interpreter import (
    BUILTINS,
    ExecResult,
    ExecutionCancelled,
    Interpreter,
)
from agent_tool_bench.tools.sandbox.overlay import DEFAULT_MOUNT_POINT, OverlayFs
from agent_tool_bench.tools.sandbox.parser import ShellSyntaxError, parse

__all__ = [
    "BUILTINS",
    "COMMANDS",
    "CommandContext",
    "DEFAULT_MOUNT_POINT",
    "ExecResult",
    "ExecutionCancelled",
    "Interpreter",
    "OverlayFs",
    "ShellCommand",
    "ShellSyntaxError",
    "parse",
]
