"""Text-processing commands available inside the sandbox shell.

Each command reads from the overlay filesystem or from its stdin string,
writes to the context's buffers, and returns an exit status.  Behaviour
follows the GNU tools for the options implemented here; anything else is
reported as an invalid option with status 2.
"""

from __future__ import annotations

import fnmatch
import json
import posixpath
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import jq

from agent_tool_bench.tools.sandbox.overlay import OverlayFs

DEV_NULL = "/dev/null"


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------


@dataclass
class CommandContext:
    """What a running command can see: filesystem, cwd, stdin, buffers."""

    fs: OverlayFs
    cwd: str
    stdin: str = ""
    env: dict[str, str] = field(default_factory=dict)
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    check_cancelled: Callable[[], None] = lambda: None

    def write(self, text: str) -> None:
        self.stdout.append(text)

    def error(self, text: str) -> None:
        self.stderr.append(text if text.endswith("\n") else text + "\n")

    def resolve(self, path: str) -> str:
        return self.fs.resolve(path, self.cwd)

    def read(self, path: str) -> str:
        """Contents of *path*; ``-`` means stdin."""
        if path == "-":
            return self.stdin
        if path == DEV_NULL:
            return ""
        return self.fs.read_text(self.resolve(path))


class UsageError(Exception):
    """Bad command-line options; reported on stderr with status 2."""


def describe_os_error(exc: OSError) -> str:
    if isinstance(exc, IsADirectoryError):
        return "Is a directory"
    if isinstance(exc, NotADirectoryError):
        return "Not a directory"
    if isinstance(exc, PermissionError):
        return "Permission denied"
    return "No such file or directory"


def split_lines(text: str) -> list[str]:
    """Lines without terminators; a final newline does not add a line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def join_lines(lines: list[str]) -> str:
    return "".join(line + "\n" for line in lines)


# ---------------------------------------------------------------------------
# Option parsing
# ---------------------------------------------------------------------------


@dataclass
class Options:
    flags: set[str] = field(default_factory=set)
    values: dict[str, list[str]] = field(default_factory=dict)
    positional: list[str] = field(default_factory=list)

    def has(self, *names: str) -> bool:
        return any(n in self.flags for n in names)

    def last(self, name: str, default: str | None = None) -> str | None:
        vals = self.values.get(name)
        return vals[-1] if vals else default

    def all(self, name: str) -> list[str]:
        return list(self.values.get(name, []))


def parse_options(
    name: str,
    args: list[str],
    *,
    flags: str = "",
    valued: str = "",
    long_flags: dict[str, str] | None = None,
    long_valued: dict[str, str] | None = None,
) -> Options:
    """GNU-style option parsing with permutation.

    ``long_flags``/``long_valued`` map long names to the key they set,
    usually the equivalent short option.
    """
    long_flags = long_flags or {}
    long_valued = long_valued or {}
    opts = Options()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            opts.positional.extend(args[i + 1:])
            break
        if arg.startswith("--"):
            key, eq, val = arg[2:].partition("=")
            if key in long_valued:
                if not eq:
                    i += 1
                    if i >= len(args):
                        raise UsageError(f"{name}: option '--{key}' requires an argument")
                    val = args[i]
                opts.values.setdefault(long_valued[key], []).append(val)
            elif key in long_flags:
                opts.flags.add(long_flags[key])
            else:
                raise UsageError(f"{name}: unrecognized option '{arg}'")
        elif arg.startswith("-") and len(arg) > 1:
            j = 1
            while j < len(arg):
                ch = arg[j]
                if ch in valued:
                    val = arg[j + 1:]
                    if not val:
                        i += 1
                        if i >= len(args):
                            raise UsageError(f"{name}: option requires an argument -- '{ch}'")
                        val = args[i]
                    opts.values.setdefault(ch, []).append(val)
                    break
                if ch in flags:
                    opts.flags.add(ch)
                else:
                    raise UsageError(f"{name}: invalid option -- '{ch}'")
                j += 1
        else:
            opts.positional.append(arg)
        i += 1
    return opts


def _int_option(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise UsageError(f"{name}: invalid number: '{value}'") from None


def _expand_numeric_shorthand(args: list[str]) -> list[str]:
    """``head -5`` -> ``head -n 5``."""
    return [
        item
        for arg in args
        for item in (["-n", arg[1:]] if re.fullmatch(r"-\d+", arg) else [arg])
    ]


def _read_inputs(ctx: CommandContext, name: str, paths: list[str]) -> Iterator[tuple[str, str | None]]:
    """Yield ``(label, text)``; text is ``None`` after reporting an error."""
    for path in paths or ["-"]:
        try:
            yield path, ctx.read(path)
        except OSError as exc:
            ctx.error(f"{name}: {path}: {describe_os_error(exc)}")
            yield path, None


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------


def cmd_ls(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options("ls", args, flags="aAlR1hdrF")
    show_hidden = opts.has("a", "A")
    targets = opts.positional or ["."]
    status = 0

    def entry_line(vpath: str, name: str) -> str:
        is_dir = ctx.fs.is_dir(vpath)
        shown = name + ("/" if is_dir and opts.has("F") else "")
        if not opts.has("l"):
            return shown
        size = 4096 if is_dir else ctx.fs.size(vpath)
        return f"{'d' if is_dir else '-'}r--r--r-- 1 user user {size:>8} {shown}"

    def listing(vdir: str) -> list[str]:
        names = [n for n in ctx.fs.listdir(vdir) if show_hidden or not n.startswith(".")]
        return sorted(names, reverse=opts.has("r"))

    files: list[str] = []
    dirs: list[str] = []
    for target in targets:
        vpath = ctx.resolve(target)
        if not ctx.fs.exists(vpath):
            ctx.error(f"ls: cannot access '{target}': No such file or directory")
            status = 2
        elif ctx.fs.is_dir(vpath) and not opts.has("d"):
            dirs.append(target)
        else:
            files.append(target)

    blocks: list[str] = []
    if files:
        blocks.append(join_lines([entry_line(ctx.resolve(f), f) for f in files]))

    with_headers = len(targets) > 1 or opts.has("R")
    queue = list(dirs)
    while queue:
        ctx.check_cancelled()
        shown = queue.pop(0)
        vdir = ctx.resolve(shown)
        names = listing(vdir)
        body = join_lines([entry_line(posixpath.join(vdir, n), n) for n in names])
        blocks.append(f"{shown}:\n{body}" if with_headers else body)
        if opts.has("R"):
            subdirs = [
                posixpath.join(shown, n) for n in names if ctx.fs.is_dir(posixpath.join(vdir, n))
            ]
            queue[0:0] = subdirs

    ctx.write("\n".join(blocks))
    return status


# ---------------------------------------------------------------------------
# cat / head / tail / wc
# ---------------------------------------------------------------------------


def cmd_cat(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options("cat", args, flags="n")
    status = 0
    lineno = 0
    for _label, text in _read_inputs(ctx, "cat", opts.positional):
        if text is None:
            status = 1
            continue
        if opts.has("n"):
            numbered = []
            for line in split_lines(text):
                lineno += 1
                numbered.append(f"{lineno:>6}\t{line}")
            text = join_lines(numbered)
        ctx.write(text)
    return status


def _head_or_tail(ctx: CommandContext, name: str, args: list[str]) -> int:
    opts = parse_options(name, _expand_numeric_shorthand(args), flags="qv", valued="nc")
    count_spec = opts.last("n", "10")
    byte_spec = opts.last("c")
    paths = opts.positional
    status = 0
    headers = len(paths) > 1 or opts.has("v")
    first = True
    for label, text in _read_inputs(ctx, name, paths):
        if text is None:
            status = 1
            continue
        if headers and not opts.has("q"):
            ctx.write(("" if first else "\n") + f"==> {label} <==\n")
        first = False
        if byte_spec is not None:
            n = _int_option(name, byte_spec)
            data = text.encode("utf-8")
            chunk = data[:n] if name == "head" else data[-n:] if n else b""
            ctx.write(chunk.decode("utf-8", errors="replace"))
            continue
        lines = text.splitlines(keepends=True)
        if name == "head":
            n = _int_option(name, count_spec)
            # a negative count drops that many trailing lines
            ctx.write("".join(lines[:n]))
        elif count_spec.startswith("+"):
            start = max(_int_option(name, count_spec[1:]) - 1, 0)
            ctx.write("".join(lines[start:]))
        else:
            n = abs(_int_option(name, count_spec))
            ctx.write("".join(lines[-n:] if n else []))
    return status


def cmd_head(ctx: CommandContext, args: list[str]) -> int:
    return _head_or_tail(ctx, "head", args)


def cmd_tail(ctx: CommandContext, args: list[str]) -> int:
    return _head_or_tail(ctx, "tail", args)


def cmd_wc(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options(
        "wc",
        args,
        flags="lwcm",
        long_flags={"lines": "l", "words": "w", "bytes": "c", "chars": "m"},
    )
    selected = [f for f in "lwcm" if opts.has(f)] or ["l", "w", "c"]
    rows: list[tuple[list[int], str]] = []
    totals = [0] * len(selected)
    status = 0
    for label, text in _read_inputs(ctx, "wc", opts.positional):
        if text is None:
            status = 1
            continue
        counts = []
        for key in selected:
            if key == "l":
                counts.append(text.count("\n"))
            elif key == "w":
                counts.append(len(text.split()))
            elif key == "c":
                counts.append(len(text.encode("utf-8")))
            else:
                counts.append(len(text))
        totals = [a + b for a, b in zip(totals, counts)]
        rows.append((counts, "" if label == "-" else label))
    if len(rows) > 1:
        rows.append((totals, "total"))

    if len(rows) == 1 and len(selected) == 1:
        counts, label = rows[0]
        ctx.write(f"{counts[0]}{' ' + label if label else ''}\n")
        return status
    width = max((len(str(c)) for counts, _ in rows for c in counts), default=1)
    for counts, label in rows:
        cells = " ".join(f"{c:>{width}}" for c in counts)
        ctx.write(f"{cells}{' ' + label if label else ''}\n")
    return status


# ---------------------------------------------------------------------------
# grep
# ---------------------------------------------------------------------------

_GREP_LONG_FLAGS = {
    "ignore-case": "i",
    "invert-match": "v",
    "count": "c",
    "files-with-matches": "l",
    "files-without-match": "L",
    "line-number": "n",
    "recursive": "r",
    "no-filename": "h",
    "with-filename": "H",
    "only-matching": "o",
    "extended-regexp": "E",
    "fixed-strings": "F",
    "word-regexp": "w",
    "line-regexp": "x",
    "quiet": "q",
    "silent": "q",
    "no-messages": "s",
}

_GREP_LONG_VALUED = {
    "regexp": "e",
    "max-count": "m",
    "after-context": "A",
    "before-context": "B",
    "context": "C",
    "include": "include",
    "exclude": "exclude",
    "exclude-dir": "exclude-dir",
    "color": "color",
    "colour": "color",
}


def basic_to_python_regex(pattern: str) -> str:
    """Translate a POSIX basic regular expression to Python syntax."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            nxt = pattern[i + 1]
            out.append(nxt if nxt in "|()+?{}" else ch + nxt)
            i += 2
            continue
        out.append("\\" + ch if ch in "|()+?{}" else ch)
        i += 1
    return "".join(out)


def compile_grep_pattern(patterns: list[str], opts: Options) -> re.Pattern[str]:
    parts = []
    for pattern in patterns:
        if opts.has("F"):
            parts.append(re.escape(pattern))
        elif opts.has("E"):
            parts.append(pattern)
        else:
            parts.append(basic_to_python_regex(pattern))
    expr = "|".join(f"(?:{p})" for p in parts)
    if opts.has("w"):
        expr = rf"(?<!\w)(?:{expr})(?!\w)"
    if opts.has("x"):
        expr = rf"^(?:{expr})$"
    return re.compile(expr, re.IGNORECASE if opts.has("i") else 0)


def cmd_grep(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options(
        "grep",
        args,
        flags="ivclLnrRhHoEFwxqs",
        valued="emABC",
        long_flags=_GREP_LONG_FLAGS,
        long_valued=_GREP_LONG_VALUED,
    )
    positional = list(opts.positional)
    patterns = opts.all("e")
    if not patterns:
        if not positional:
            raise UsageError("Usage: grep [OPTION]... PATTERNS [FILE]...")
        patterns = [positional.pop(0)]
    try:
        regex = compile_grep_pattern(patterns, opts)
    except re.error as exc:
        ctx.error(f"grep: invalid regular expression: {exc}")
        return 2

    recursive = opts.has("r", "R")
    max_count = _int_option("grep", opts.last("m")) if opts.last("m") else None
    after = _int_option("grep", opts.last("A") or opts.last("C") or "0")
    before = _int_option("grep", opts.last("B") or opts.last("C") or "0")
    includes = opts.all("include")
    excludes = opts.all("exclude")
    exclude_dirs = opts.all("exclude-dir")

    targets = positional or (["."] if recursive else ["-"])
    inputs: list[str] = []
    errors = False
    for target in targets:
        if target == "-":
            inputs.append(target)
            continue
        vpath = ctx.resolve(target)
        if ctx.fs.is_dir(vpath):
            if not recursive:
                ctx.error(f"grep: {target}: Is a directory")
                errors = True
                continue
            for dirpath, dirnames, filenames in ctx.fs.walk(vpath):
                ctx.check_cancelled()
                dirnames[:] = [
                    d for d in dirnames if not any(fnmatch.fnmatch(d, g) for g in exclude_dirs)
                ]
                for name in filenames:
                    if includes and not any(fnmatch.fnmatch(name, g) for g in includes):
                        continue
                    if any(fnmatch.fnmatch(name, g) for g in excludes):
                        continue
                    rel = posixpath.relpath(posixpath.join(dirpath, name), vpath)
                    inputs.append(posixpath.join(target, rel))
        else:
            inputs.append(target)

    show_names = (len(inputs) > 1 or recursive) and not opts.has("h")
    if opts.has("H"):
        show_names = True

    matched_any = False
    for label in inputs:
        ctx.check_cancelled()
        try:
            text = ctx.read(label)
        except OSError as exc:
            if not opts.has("s"):
                ctx.error(f"grep: {label}: {describe_os_error(exc)}")
            errors = True
            continue
        shown_label = "(standard input)" if label == "-" else label
        lines = split_lines(text)
        hits = [
            idx for idx, line in enumerate(lines)
            if (regex.search(line) is not None) != opts.has("v")
        ]
        if max_count is not None:
            hits = hits[:max_count]
        if hits:
            matched_any = True
        if opts.has("q"):
            if matched_any:
                return 0
            continue
        if opts.has("l"):
            if hits:
                ctx.write(shown_label + "\n")
            continue
        if opts.has("L"):
            if not hits:
                ctx.write(shown_label + "\n")
            continue
        prefix = f"{shown_label}:" if show_names else ""
        if opts.has("c"):
            ctx.write(f"{prefix}{len(hits)}\n")
            continue
        if opts.has("o") and not opts.has("v"):
            for idx in hits:
                num = f"{idx + 1}:" if opts.has("n") else ""
                for m in regex.finditer(lines[idx]):
                    if m.group(0):
                        ctx.write(f"{prefix}{num}{m.group(0)}\n")
            continue
        _write_with_context(ctx, lines, hits, shown_label if show_names else "", opts.has("n"), before, after)

    if matched_any:
        return 0
    return 2 if errors else 1


def _write_with_context(
    ctx: CommandContext,
    lines: list[str],
    hits: list[int],
    label: str,
    numbered: bool,
    before: int,
    after: int,
) -> None:
    hit_set = set(hits)
    shown: list[int] = []
    for idx in hits:
        for j in range(max(idx - before, 0), min(idx + after, len(lines) - 1) + 1):
            if not shown or j > shown[-1]:
                shown.append(j)
    previous = None
    for j in shown:
        if (before or after) and previous is not None and j > previous + 1:
            ctx.write("--\n")
        sep = ":" if j in hit_set else "-"
        head = f"{label}{sep}" if label else ""
        num = f"{j + 1}{sep}" if numbered else ""
        ctx.write(f"{head}{num}{lines[j]}\n")
        previous = j


# ---------------------------------------------------------------------------
# find
# ---------------------------------------------------------------------------

Predicate = Callable[[str, str, bool], bool]  # (display path, name, is_dir)


def _find_predicate(option: str, value: str | None) -> Predicate:
    if option == "-name":
        return lambda path, name, is_dir: fnmatch.fnmatchcase(name, value)
    if option == "-iname":
        return lambda path, name, is_dir: fnmatch.fnmatchcase(name.lower(), value.lower())
    if option in ("-path", "-wholename"):
        return lambda path, name, is_dir: fnmatch.fnmatchcase(path, value)
    if option == "-ipath":
        return lambda path, name, is_dir: fnmatch.fnmatchcase(path.lower(), value.lower())
    if option == "-type":
        if value not in ("f", "d"):
            raise UsageError(f"find: Unknown argument to -type: {value}")
        want_dir = value == "d"
        return lambda path, name, is_dir: is_dir == want_dir
    raise UsageError(f"find: unknown predicate `{option}'")


def cmd_find(ctx: CommandContext, args: list[str]) -> int:
    starts: list[str] = []
    i = 0
    while i < len(args) and not (args[i].startswith("-") or args[i] == "!"):
        starts.append(args[i])
        i += 1
    starts = starts or ["."]

    max_depth: int | None = None
    min_depth = 0
    groups: list[list[tuple[bool, Predicate]]] = [[]]
    negate = False
    while i < len(args):
        token = args[i]
        if token in ("!", "-not"):
            negate = not negate
            i += 1
            continue
        if token in ("-o", "-or"):
            groups.append([])
            i += 1
            continue
        if token in ("-a", "-and", "-print"):
            i += 1
            continue
        if token in ("-maxdepth", "-mindepth"):
            if i + 1 >= len(args):
                raise UsageError(f"find: missing argument to `{token}'")
            depth = _int_option("find", args[i + 1])
            if token == "-maxdepth":
                max_depth = depth
            else:
                min_depth = depth
            i += 2
            continue
        if token in ("-name", "-iname", "-path", "-wholename", "-ipath", "-type"):
            if i + 1 >= len(args):
                raise UsageError(f"find: missing argument to `{token}'")
            groups[-1].append((negate, _find_predicate(token, args[i + 1])))
            negate = False
            i += 2
            continue
        raise UsageError(f"find: unknown predicate `{token}'")

    def matches(path: str, name: str, is_dir: bool) -> bool:
        return any(
            all(pred(path, name, is_dir) != neg for neg, pred in group) for group in groups
        )

    status = 0
    for start in starts:
        vstart = ctx.resolve(start)
        if not ctx.fs.exists(vstart):
            ctx.error(f"find: '{start}': No such file or directory")
            status = 1
            continue
        stack: list[tuple[str, str, int]] = [(start, vstart, 0)]
        while stack:
            ctx.check_cancelled()
            shown, vpath, depth = stack.pop()
            is_dir = ctx.fs.is_dir(vpath)
            name = posixpath.basename(shown.rstrip("/")) or shown
            if depth >= min_depth and matches(shown, name, is_dir):
                ctx.write(shown + "\n")
            if is_dir and (max_depth is None or depth < max_depth):
                children = ctx.fs.listdir(vpath)
                for child in reversed(children):
                    stack.append(
                        (posixpath.join(shown, child), posixpath.join(vpath, child), depth + 1)
                    )
    return status


# ---------------------------------------------------------------------------
# sort / uniq
# ---------------------------------------------------------------------------

_NUMERIC_PREFIX = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def _numeric_key(text: str) -> float:
    m = _NUMERIC_PREFIX.match(text)
    return float(m.group(1)) if m else 0.0


def _sort_field(line: str, spec: str, separator: str | None) -> str:
    start_spec, _, end_spec = spec.partition(",")
    start = _int_option("sort", start_spec.split(".")[0]) - 1
    fields = line.split(separator) if separator else line.split()
    if end_spec:
        end = _int_option("sort", end_spec.split(".")[0])
        chosen = fields[start:end]
    else:
        chosen = fields[start:]
    return (separator or " ").join(chosen)


def cmd_sort(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options(
        "sort",
        args,
        flags="rnufb",
        valued="kt",
        long_flags={"reverse": "r", "numeric-sort": "n", "unique": "u", "ignore-case": "f"},
        long_valued={"key": "k", "field-separator": "t"},
    )
    lines: list[str] = []
    status = 0
    for _label, text in _read_inputs(ctx, "sort", opts.positional):
        if text is None:
            status = 2
            continue
        lines.extend(split_lines(text))

    key_spec = opts.last("k")
    separator = opts.last("t")

    def key_text(line: str) -> str:
        text = _sort_field(line, key_spec, separator) if key_spec else line
        if opts.has("b"):
            text = text.lstrip()
        return text.lower() if opts.has("f") else text

    def sort_key(line: str) -> tuple[Any, str]:
        text = key_text(line)
        return (_numeric_key(text) if opts.has("n") else text, line)

    ordered = sorted(lines, key=sort_key, reverse=opts.has("r"))
    if opts.has("u"):
        unique: list[str] = []
        last_key: Any = object()
        for line in ordered:
            k = sort_key(line)[0]
            if k != last_key:
                unique.append(line)
                last_key = k
        ordered = unique
    ctx.write(join_lines(ordered))
    return status


def cmd_uniq(ctx: CommandContext, args: list[str]) -> int:
    opts = parse_options(
        "uniq",
        args,
        flags="cdui",
        long_flags={"count": "c", "repeated": "d", "unique": "u", "ignore-case": "i"},
    )
    source = opts.positional[0] if opts.positional else "-"
    try:
        text = ctx.read(source)
    except OSError as exc:
        ctx.error(f"uniq: {source}: {describe_os_error(exc)}")
        return 1

    groups: list[tuple[str, int]] = []
    for line in split_lines(text):
        key = line.lower() if opts.has("i") else line
        if groups and (groups[-1][0].lower() if opts.has("i") else groups[-1][0]) == key:
            groups[-1] = (groups[-1][0], groups[-1][1] + 1)
        else:
            groups.append((line, 1))

    out: list[str] = []
    for line, count in groups:
        if opts.has("d") and count < 2:
            continue
        if opts.has("u") and count > 1:
            continue
        out.append(f"{count:>7} {line}" if opts.has("c") else line)
    ctx.write(join_lines(out))
    return 0


# ---------------------------------------------------------------------------
# jq
# ---------------------------------------------------------------------------

_JQ_SHORT = {"r": "raw", "c": "compact", "s": "slurp", "n": "null", "j": "join", "S": "sort", "e": "exit"}
_JQ_LONG = {
    "raw-output": "raw",
    "compact-output": "compact",
    "slurp": "slurp",
    "null-input": "null",
    "join-output": "join",
    "sort-keys": "sort",
    "exit-status": "exit",
}


def _format_json(value: Any, *, compact: bool, sort_keys: bool) -> str:
    if compact:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=sort_keys)
    return json.dumps(value, ensure_ascii=False, indent=2, sort_keys=sort_keys)


def cmd_jq(ctx: CommandContext, args: list[str]) -> int:
    modes: set[str] = set()
    named: dict[str, Any] = {}
    positional: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--arg", "--argjson"):
            if i + 2 >= len(args):
                raise UsageError(f"jq: {arg} takes two parameters (e.g. {arg} varname value)")
            value: Any = args[i + 2]
            if arg == "--argjson":
                try:
                    value = json.loads(value)
                except ValueError:
                    raise UsageError("jq: Invalid JSON text passed to --argjson") from None
            named[args[i + 1]] = value
            i += 3
            continue
        if arg.startswith("--"):
            if arg[2:] not in _JQ_LONG:
                raise UsageError(f"jq: Unknown option: {arg}")
            modes.add(_JQ_LONG[arg[2:]])
        elif arg.startswith("-") and len(arg) > 1:
            for ch in arg[1:]:
                if ch not in _JQ_SHORT:
                    raise UsageError(f"jq: Unknown option: {arg}")
                modes.add(_JQ_SHORT[ch])
        else:
            positional.append(arg)
        i += 1

    if not positional:
        raise UsageError("Usage: jq [OPTIONS] FILTER [FILES...]")
    program_text, paths = positional[0], positional[1:]

    try:
        program = jq.compile(program_text, args=named)
    except ValueError as exc:
        ctx.error(f"jq: error: {exc}")
        return 3

    chunks: list[str] = []
    for _label, text in _read_inputs(ctx, "jq", paths):
        if text is None:
            return 2
        chunks.append(text)
    data = "\n".join(chunks)

    try:
        if "null" in modes:
            results = program.input_value(None).all()
        elif "slurp" in modes:
            results = program.input_text(data, slurp=True).all()
        elif data.strip():
            results = program.input_text(data).all()
        else:
            results = []
    except ValueError as exc:
        ctx.error(f"jq: error (at {paths[0] if paths else '<stdin>'}): {exc}")
        return 5

    terminator = "" if "join" in modes else "\n"
    for value in results:
        if isinstance(value, str) and modes & {"raw", "join"}:
            ctx.write(value + terminator)
        else:
            ctx.write(
                _format_json(value, compact="compact" in modes, sort_keys="sort" in modes)
                + terminator
            )
    if "exit" in modes:
        return 1 if not results or results[-1] in (None, False) else 0
    return 0


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

CommandFn = Callable[[CommandContext, list[str]], int]


@dataclass(frozen=True)
class ShellCommand:
    name: str
    description: str
    run: CommandFn


COMMANDS: dict[str, ShellCommand] = {
    cmd.name: cmd
    for cmd in (
        ShellCommand("ls", "List directory contents", cmd_ls),
        ShellCommand("grep", "Search for patterns in files", cmd_grep),
        ShellCommand("cat", "Read file contents", cmd_cat),
        ShellCommand("find", "Find files by name pattern", cmd_find),
        ShellCommand("head", "Show first N lines", cmd_head),
        ShellCommand("tail", "Show last N lines", cmd_tail),
        ShellCommand("wc", "Count lines/words", cmd_wc),
        ShellCommand("jq", "Query JSON files", cmd_jq),
        ShellCommand("sort", "Sort lines", cmd_sort),
        ShellCommand("uniq", "Collapse repeated adjacent lines", cmd_uniq),
    )
}
