"""Configuration dataclasses for agent-tool-bench.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations, plus ``to_dict()`` / ``from_dict()``.

Configs are **frozen** (``frozen=True``) so a config captured by a tool adapter
or an agent variant cannot drift while an invocation is running.

``BenchConfig.from_env()`` is the single place where environment variables
are read; worker processes inherit the parent's environment, so both sides
resolve the same configuration.  When ``BENCH_CONFIG`` names a JSON file
(see :func:`load_config_from_json`) that file is the whole configuration.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from agent_tool_bench.domain.enums import ShellToolSet

DEFAULT_MAX_OUTPUT_CHARS = 30_000
CONFIG_FILE_VAR = "BENCH_CONFIG"

# Shell command groups.  ``core-only`` exposes discovery, ``core-plus-read``
# adds file reading, ``all`` adds counting, structured queries and sorting.
CORE_COMMANDS: tuple[str, ...] = ("ls", "find", "grep")
READ_COMMANDS: tuple[str, ...] = ("cat", "head", "tail")
EXTRA_COMMANDS: tuple[str, ...] = ("wc", "jq", "sort", "uniq")
ALL_COMMANDS: tuple[str, ...] = CORE_COMMANDS + READ_COMMANDS + EXTRA_COMMANDS

_TOOL_SET_COMMANDS: dict[ShellToolSet, tuple[str, ...]] = {
    ShellToolSet.CORE_ONLY: CORE_COMMANDS,
    ShellToolSet.CORE_PLUS_READ: CORE_COMMANDS + READ_COMMANDS,
    ShellToolSet.ALL: ALL_COMMANDS,
}


def _filter_known(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Loop Configuration                                                    #
# ===================================================================== #


@dataclass(frozen=True)
class LoopConfig:
    """Parameters governing one agent loop invocation.

    Attributes
    ----------
    max_steps:
        Step budget.  ``None`` means "use the agent variant's default"
        (20 for the shell sandbox, 50 otherwise).
    max_output_chars:
        Character ceiling applied to every tool result.
    result_preview_chars:
        Length of the tool-result preview forwarded to progress sinks.
    """

    max_steps: int | None = None
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS
    result_preview_chars: int = 500

    def validate(self) -> None:
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")
        if self.max_output_chars < 1:
            raise ValueError(
                f"max_output_chars must be >= 1, got {self.max_output_chars}"
            )
        if self.result_preview_chars < 0:
            raise ValueError(
                f"result_preview_chars must be >= 0, got {self.result_preview_chars}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoopConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Shell Sandbox Configuration                                           #
# ===================================================================== #


@dataclass(frozen=True)
class ShellConfig:
    """Parameters for the shell-sandbox tool adapter.

    Attributes
    ----------
    tool_set:
        Preset command subset: ``all``, ``core-only`` or ``core-plus-read``.
    commands:
        Explicit whitelist.  When non-empty it replaces the preset.
    timeout_ms:
        Per-call wall-clock budget.
    max_call_depth:
        Maximum nesting of ``bash -c`` / ``sh -c`` invocations.
    max_loop_iterations:
        Maximum ``for`` loop iterations per call, across all loops.
    max_command_count:
        Maximum simple commands executed per call.
    """

    tool_set: str = ShellToolSet.ALL.value
    commands: tuple[str, ...] = ()
    timeout_ms: int = 10_000
    max_call_depth: int = 8
    max_loop_iterations: int = 1_000
    max_command_count: int = 1_000

    def __post_init__(self) -> None:
        # JSON and env input arrive as lists; keep the frozen field hashable.
        if not isinstance(self.commands, tuple):
            object.__setattr__(self, "commands", tuple(self.commands or ()))

    @property
    def enabled_commands(self) -> tuple[str, ...]:
        """The whitelisted commands, in prompt order."""
        if self.commands:
            return self.commands
        return _TOOL_SET_COMMANDS[ShellToolSet(self.tool_set)]

    def validate(self) -> None:
        valid_sets = {s.value for s in ShellToolSet}
        if self.tool_set not in valid_sets:
            raise ValueError(
                f"tool_set must be one of {sorted(valid_sets)}, got '{self.tool_set}'"
            )
        unknown = [c for c in self.commands if c not in ALL_COMMANDS]
        if unknown:
            raise ValueError(
                f"unknown shell commands {unknown}; available: {list(ALL_COMMANDS)}"
            )
        if self.timeout_ms < 1:
            raise ValueError(f"timeout_ms must be >= 1, got {self.timeout_ms}")
        if self.max_call_depth < 1:
            raise ValueError(f"max_call_depth must be >= 1, got {self.max_call_depth}")
        if self.max_loop_iterations < 0:
            raise ValueError(
                f"max_loop_iterations must be >= 0, got {self.max_loop_iterations}"
            )
        if self.max_command_count < 1:
            raise ValueError(
                f"max_command_count must be >= 1, got {self.max_command_count}"
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["commands"] = list(self.commands)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShellConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Filesystem Configuration                                              #
# ===================================================================== #


@dataclass(frozen=True)
class FilesystemConfig:
    """Latency bounds for the filesystem adapter's ``searchFiles``."""

    max_search_files: int = 1_000
    max_file_bytes: int = 1024 * 1024
    max_lines_per_file: int = 3
    max_line_chars: int = 200

    def validate(self) -> None:
        if self.max_search_files < 1:
            raise ValueError(
                f"max_search_files must be >= 1, got {self.max_search_files}"
            )
        if self.max_file_bytes < 1:
            raise ValueError(f"max_file_bytes must be >= 1, got {self.max_file_bytes}")
        if self.max_lines_per_file < 0:
            raise ValueError(
                f"max_lines_per_file must be >= 0, got {self.max_lines_per_file}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilesystemConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Embedding Configuration                                               #
# ===================================================================== #


@dataclass(frozen=True)
class EmbeddingConfig:
    """Parameters for the embedding-search adapter.

    Attributes
    ----------
    model:
        Embedding model used for query text.  Must match the model the
        stored vectors were computed with.
    top_k:
        Default number of results of ``searchSimilar``.
    cache_key_chars:
        Query text is truncated to this many characters before embedding
        and caching.
    """

    model: str = "text-embedding-3-small"
    top_k: int = 10
    cache_key_chars: int = 8_000

    def validate(self) -> None:
        if not self.model:
            raise ValueError("embedding model must not be empty")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if self.cache_key_chars < 1:
            raise ValueError(f"cache_key_chars must be >= 1, got {self.cache_key_chars}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmbeddingConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Scorer Configuration                                                  #
# ===================================================================== #

# A superset answer counts as fully correct, unlike the stricter 0.6 of the
# usual factuality rubric.
DEFAULT_CHOICE_SCORES: dict[str, float] = {
    "A": 0.4,
    "B": 1.0,
    "C": 1.0,
    "D": 0.0,
    "E": 1.0,
}


@dataclass(frozen=True)
class ScorerConfig:
    """Parameters for the factuality scorer.

    Attributes
    ----------
    model:
        Friendly id or raw OpenAI model name of the classifier.
    max_retries:
        Total classification attempts before giving up with a null score.
    choice_scores:
        Weight of each classifier choice (``A`` .. ``E``).
    """

    model: str = "gpt-4.1-mini"
    max_retries: int = 3
    choice_scores: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CHOICE_SCORES)
    )

    def __post_init__(self) -> None:
        if self.choice_scores is None:
            object.__setattr__(self, "choice_scores", dict(DEFAULT_CHOICE_SCORES))

    def validate(self) -> None:
        if not self.model:
            raise ValueError("scorer model must not be empty")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        missing = set(DEFAULT_CHOICE_SCORES) - set(self.choice_scores)
        if missing:
            raise ValueError(f"choice_scores is missing choices {sorted(missing)}")
        for choice, score in self.choice_scores.items():
            if not (0.0 <= score <= 1.0):
                raise ValueError(
                    f"choice_scores[{choice!r}] must be in [0, 1], got {score}"
                )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScorerConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Corpus Configuration                                                  #
# ===================================================================== #


@dataclass(frozen=True)
class CorpusConfig:
    """Location of the pre-built corpus artifacts.

    All paths derive from ``data_dir``; relative directories resolve
    against the current working directory.
    """

    data_dir: str = "data"

    @property
    def root(self) -> Path:
        return Path(self.data_dir).resolve()

    @property
    def filesystem_dir(self) -> Path:
        return self.root / "filesystem"

    @property
    def database_path(self) -> Path:
        return self.root / "database.sqlite"

    @property
    def embeddings_path(self) -> Path:
        return self.root / "embeddings.bin"

    @property
    def index_path(self) -> Path:
        return self.root / "embeddings-index.json"

    def validate(self) -> None:
        if not self.data_dir:
            raise ValueError("data_dir must not be empty")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CorpusConfig:
        cfg = cls(**_filter_known(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Aggregate                                                             #
# ===================================================================== #


@dataclass(frozen=True)
class BenchConfig:
    """Everything an agent variant or the evaluation harness needs."""

    model: str = ""
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    filesystem: FilesystemConfig = field(default_factory=FilesystemConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    scorer: ScorerConfig = field(default_factory=ScorerConfig)

    def validate(self) -> None:
        self.corpus.validate()
        self.loop.validate()
        self.shell.validate()
        self.filesystem.validate()
        self.embedding.validate()
        self.scorer.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "corpus": self.corpus.to_dict(),
            "loop": self.loop.to_dict(),
            "shell": self.shell.to_dict(),
            "filesystem": self.filesystem.to_dict(),
            "embedding": self.embedding.to_dict(),
            "scorer": self.scorer.to_dict(),
        }

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BenchConfig:
        """Build a config from environment variables.

        Recognised variables: ``MODEL``, ``MAX_STEPS``, ``DATA_DIR``,
        ``BASH_TOOL_SET``, ``BASH_TOOLS`` (comma-separated),
        ``BASH_TIMEOUT_MS``, ``SCORER_MODEL``.  If ``BENCH_CONFIG`` is set,
        the JSON file it names is loaded instead and the others are ignored.
        """
        env = os.environ if environ is None else environ
        config_file = env.get(CONFIG_FILE_VAR)
        if config_file:
            return load_config_file(config_file)

        max_steps = env.get("MAX_STEPS")
        bash_tools = env.get("BASH_TOOLS", "")
        commands = tuple(c.strip() for c in bash_tools.split(",") if c.strip())

        cfg = cls(
            model=env.get("MODEL", ""),
            corpus=CorpusConfig(data_dir=env.get("DATA_DIR", "data")),
            loop=LoopConfig(max_steps=int(max_steps) if max_steps else None),
            shell=ShellConfig(
                tool_set=env.get("BASH_TOOL_SET", ShellToolSet.ALL.value),
                commands=commands,
                timeout_ms=int(env.get("BASH_TIMEOUT_MS", "10000")),
            ),
            scorer=ScorerConfig(model=env.get("SCORER_MODEL", "gpt-4.1-mini")),
        )
        cfg.validate()
        return cfg


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "corpus": CorpusConfig,
    "loop": LoopConfig,
    "shell": ShellConfig,
    "filesystem": FilesystemConfig,
    "embedding": EmbeddingConfig,
    "scorer": ScorerConfig,
}


def load_config_from_json(json_str: str) -> BenchConfig:
    """Parse a sectioned JSON document into a ``BenchConfig``.

    The JSON is expected to be an object whose top-level keys are config
    section names (``corpus``, ``loop``, ``shell``, ``filesystem``,
    ``embedding``, ``scorer``) plus an optional ``model`` string.  Missing
    sections keep their defaults; unknown sections are ignored.
    """
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    sections: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            sections[section] = cls.from_dict(data)
    cfg = BenchConfig(model=str(raw.get("model", "")), **sections)
    cfg.validate()
    return cfg


def load_config_file(path: str | Path) -> BenchConfig:
    """Load a config file in the format of :func:`load_config_from_json`."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    return load_config_from_json(path.read_text(encoding="utf-8"))
