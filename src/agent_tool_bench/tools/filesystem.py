"""Structured filesystem tools over the corpus document tree.

Every path argument is resolved lexically against the corpus root and
checked for containment before any filesystem call is made.  Glob patterns
are checked the same way, since a ``..`` segment in a pattern would walk out
of the root just as a path would.
"""

from __future__ import annotations

import glob
import json
import logging
import os
import re
from pathlib import Path

from pydantic import BaseModel, Field

from agent_tool_bench.domain.enums import AgentType
from agent_tool_bench.domain.exceptions import PathEscapeError
from agent_tool_bench.infrastructure.config import DEFAULT_MAX_OUTPUT_CHARS, FilesystemConfig
from agent_tool_bench.tools.base import ToolAdapter, ToolCapability, truncate_output

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a data analyst assistant that explores GitHub event data stored in a filesystem.

The data is organized as follows:
- repos/{owner}/{repo}/repo.json - Repository metadata
- repos/{owner}/{repo}/issues/{number}.json - Issue data with title, body, state, labels, comments
- repos/{owner}/{repo}/pulls/{number}.json - Pull request data with title, body, state, merged status, comments
- users/{username}.json - User data with activity counts

You have access to filesystem tools:
- listDir: List directory contents (with optional recursive mode)
- readFile: Read file contents
- readJson: Read and parse JSON files
- searchFiles: Search for text patterns in files
- findFiles: Find files matching a glob pattern
- countFiles: Count files matching a pattern
- fileExists: Check if a file/directory exists

Use these tools to explore the data and answer questions. Start by understanding the directory structure, then drill down to find specific information.

When searching, consider:
- Use 'findFiles' with glob patterns like "**/issues/*.json"
- Use 'searchFiles' for text pattern matching
- Use 'readJson' to parse JSON files directly
- Paths are relative to the data directory (start with "repos/" or "users/")"""


# ---------------------------------------------------------------------------
# Path containment
# ---------------------------------------------------------------------------


def resolve_within(root: str | Path, path: str) -> str:
    """Resolve *path* against *root* without touching the filesystem.

    Leading slashes are stripped so ``/repos`` means ``<root>/repos``.

    Raises
    ------
    PathEscapeError
        If the normalized path is not *root* or a descendant of it.
    """
    root_str = os.path.normpath(os.path.abspath(root))
    candidate = os.path.normpath(os.path.join(root_str, path.lstrip("/\\")))
    if os.path.commonpath([root_str, candidate]) != root_str:
        raise PathEscapeError(path)
    return candidate


def check_pattern(pattern: str) -> str:
    """Reject glob patterns that are absolute or climb with ``..``."""
    if os.path.isabs(pattern) or ".." in Path(pattern).parts:
        raise PathEscapeError(pattern)
    return pattern


def glob_relative(base: str, pattern: str, *, files_only: bool = False) -> list[str]:
    """Match *pattern* under *base*; ``**`` spans directories.

    Returns sorted paths relative to *base* using forward slashes.
    """
    matches = glob.glob(check_pattern(pattern), root_dir=base, recursive=True)
    if files_only:
        matches = [m for m in matches if os.path.isfile(os.path.join(base, m))]
    return sorted(m.replace(os.sep, "/") for m in matches)


# ---------------------------------------------------------------------------
# Input schemas
# ---------------------------------------------------------------------------


class ListDirInput(BaseModel):
    path: str = Field(description="Directory path relative to data directory")
    recursive: bool | None = Field(default=None, description="If true, list all files recursively")


class ReadFileInput(BaseModel):
    path: str = Field(description="File path relative to data directory")


class ReadJsonInput(BaseModel):
    path: str = Field(description="JSON file path relative to data directory")


class SearchFilesInput(BaseModel):
    pattern: str = Field(description="Text pattern to search for")
    path: str = Field(description="Directory to search in")
    filePattern: str | None = Field(
        default=None, description='Glob pattern for files to search, e.g., "*.json"'
    )
    caseInsensitive: bool | None = Field(
        default=None, description="If true, search is case-insensitive"
    )


class GlobInput(BaseModel):
    pattern: str = Field(description='Glob pattern, e.g., "**/issues/*.json"')
    path: str | None = Field(default=None, description="Starting directory (defaults to root)")


class FileExistsInput(BaseModel):
    path: str = Field(description="Path to check")


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class FilesystemToolAdapter(ToolAdapter):
    """``listDir``/``readFile``/``readJson``/``searchFiles``/``findFiles``/
    ``countFiles``/``fileExists`` rooted at the corpus document tree.

    Parameters
    ----------
    root:
        Corpus ``filesystem`` directory.
    config:
        Search bounds.
    max_output_chars:
        Truncation ceiling for textual results.
    """

    agent_type = AgentType.FS

    def __init__(
        self,
        root: str | Path,
        config: FilesystemConfig | None = None,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    ) -> None:
        self._root = os.path.normpath(os.path.abspath(root))
        self._config = config or FilesystemConfig()
        self._max_output_chars = max_output_chars

    @property
    def root(self) -> str:
        return self._root

    def _truncate(self, text: str) -> str:
        return truncate_output(text, self._max_output_chars)

    def _base(self, path: str | None) -> str:
        return resolve_within(self._root, path) if path else self._root

    # -- operations -----------------------------------------------------------

    def list_dir(self, params: ListDirInput) -> str:
        full = resolve_within(self._root, params.path)
        if params.recursive:
            return self._truncate("\n".join(glob_relative(full, "**/*")))
        with os.scandir(full) as it:
            entries = sorted(it, key=lambda e: e.name)
            names = [f"{e.name}/" if e.is_dir() else e.name for e in entries]
        return self._truncate("\n".join(names))

    def read_file(self, params: ReadFileInput) -> str:
        full = resolve_within(self._root, params.path)
        with open(full, encoding="utf-8") as fh:
            return self._truncate(fh.read())

    def read_json(self, params: ReadJsonInput) -> str:
        full = resolve_within(self._root, params.path)
        with open(full, encoding="utf-8") as fh:
            data = json.load(fh)
        return self._truncate(json.dumps(data, indent=2, ensure_ascii=False))

    def search_files(self, params: SearchFilesInput) -> str:
        full = resolve_within(self._root, params.path)
        flags = re.IGNORECASE if params.caseInsensitive else 0
        regex = re.compile(params.pattern, flags)
        cfg = self._config

        files = glob_relative(full, params.filePattern or "**/*", files_only=True)
        if len(files) > cfg.max_search_files:
            logger.debug(
                "searchFiles: scanning %d of %d files", cfg.max_search_files, len(files)
            )

        results: list[str] = []
        for rel in files[: cfg.max_search_files]:
            file_path = os.path.join(full, rel)
            if os.path.getsize(file_path) > cfg.max_file_bytes:
                continue
            with open(file_path, encoding="utf-8", errors="replace") as fh:
                content = fh.read()
            total = sum(1 for _ in regex.finditer(content))
            if not total:
                continue
            results.append(f"{rel}: {total} match(es)")
            shown = 0
            for lineno, line in enumerate(content.split("\n"), start=1):
                if shown >= cfg.max_lines_per_file:
                    break
                if regex.search(line):
                    results.append(f"  Line {lineno}: {line[: cfg.max_line_chars]}")
                    shown += 1

        if not results:
            return "No matches found"
        return self._truncate("\n".join(results))

    def find_files(self, params: GlobInput) -> str:
        files = glob_relative(self._base(params.path), params.pattern)
        if not files:
            return "No files found"
        return self._truncate("\n".join(files))

    def count_files(self, params: GlobInput) -> str:
        files = glob_relative(self._base(params.path), params.pattern)
        return f"{len(files)} files"

    def file_exists(self, params: FileExistsInput) -> str:
        full = resolve_within(self._root, params.path)
        if os.path.isdir(full):
            return "Directory exists"
        if os.path.exists(full):
            return "File exists"
        return "Does not exist"

    # -- ToolAdapter ----------------------------------------------------------

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                "listDir",
                "List contents of a directory. Returns files and subdirectories.",
                ListDirInput,
                self.list_dir,
            ),
            ToolCapability("readFile", "Read the contents of a file", ReadFileInput, self.read_file),
            ToolCapability(
                "readJson",
                "Read and parse a JSON file, returning the parsed object",
                ReadJsonInput,
                self.read_json,
            ),
            ToolCapability(
                "searchFiles",
                "Search for a text pattern in files. Returns matching files and the matching lines.",
                SearchFilesInput,
                self.search_files,
            ),
            ToolCapability("findFiles", "Find files matching a glob pattern", GlobInput, self.find_files),
            ToolCapability("countFiles", "Count files matching a glob pattern", GlobInput, self.count_files),
            ToolCapability(
                "fileExists", "Check if a file or directory exists", FileExistsInput, self.file_exists
            ),
        ]

    def system_prompt(self) -> str:
        return SYSTEM_PROMPT
