"""Tokenizer and parser for the sandbox shell language.

Supported grammar::

    script    := and_or ((';' | NEWLINE) and_or)*
    and_or    := pipeline (('&&' | '||') pipeline)*
    pipeline  := command ('|' command)*
    command   := for_loop redirect* | (WORD | redirect)+
    for_loop  := 'for' NAME 'in' WORD* sep 'do' script 'done'
    redirect  := [fd] ('>' | '>>' | '<') WORD | [fd] '>&' fd | '&>' WORD

Words keep their quoting as segments so expansion can tell quoted text
(no globbing, no splitting) from unquoted text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from agent_tool_bench.domain.exceptions import ToolExecutionError


class ShellSyntaxError(ToolExecutionError):
    """Raised when a command line cannot be parsed."""


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

# Segment quoting modes
RAW = "raw"  # unquoted: variables expand, results split and glob
DOUBLE = "double"  # "...": variables expand, no split, no glob
LITERAL = "literal"  # '...' or backslash escape: taken as-is


@dataclass(frozen=True)
class Segment:
    text: str
    mode: str


@dataclass(frozen=True)
class Word:
    segments: tuple[Segment, ...]

    @property
    def plain(self) -> str | None:
        """The text when the word is one unquoted segment, else ``None``."""
        if len(self.segments) == 1 and self.segments[0].mode == RAW:
            return self.segments[0].text
        return None

    def __str__(self) -> str:
        return "".join(s.text for s in self.segments)


@dataclass(frozen=True)
class Operator:
    value: str  # ';' '&&' '||' '|'


@dataclass(frozen=True)
class RedirectToken:
    op: str  # '>' '>>' '<' '>&' '&>'
    fd: int


Token = Union[Word, Operator, RedirectToken]

_SEPARATOR = ";"


def tokenize(source: str) -> list[Token]:
    """Split *source* into words, operators and redirection markers."""
    tokens: list[Token] = []
    segments: list[Segment] = []
    raw_buf: list[str] = []
    in_word = False
    i = 0
    n = len(source)

    def flush_raw() -> None:
        if raw_buf:
            segments.append(Segment("".join(raw_buf), RAW))
            raw_buf.clear()

    def end_word() -> None:
        nonlocal in_word
        flush_raw()
        if in_word:
            tokens.append(Word(tuple(segments)))
        segments.clear()
        in_word = False

    while i < n:
        ch = source[i]

        if ch in " \t":
            end_word()
            i += 1
        elif ch == "\n":
            end_word()
            tokens.append(Operator(_SEPARATOR))
            i += 1
        elif ch == "#" and not in_word:
            while i < n and source[i] != "\n":
                i += 1
        elif ch == "'":
            end = source.find("'", i + 1)
            if end < 0:
                raise ShellSyntaxError("unexpected EOF while looking for matching `''")
            flush_raw()
            segments.append(Segment(source[i + 1:end], LITERAL))
            in_word = True
            i = end + 1
        elif ch == '"':
            flush_raw()
            buf: list[str] = []
            i += 1
            while True:
                if i >= n:
                    raise ShellSyntaxError("unexpected EOF while looking for matching `\"'")
                c = source[i]
                if c == '"':
                    break
                if c == "\\" and i + 1 < n and source[i + 1] in '"\\$`':
                    if buf:
                        segments.append(Segment("".join(buf), DOUBLE))
                        buf = []
                    segments.append(Segment(source[i + 1], LITERAL))
                    i += 2
                    continue
                if c == "$" and source.startswith("$(", i):
                    raise ShellSyntaxError("command substitution is not supported")
                buf.append(c)
                i += 1
            segments.append(Segment("".join(buf), DOUBLE))
            in_word = True
            i += 1
        elif ch == "\\":
            flush_raw()
            if i + 1 < n and source[i + 1] == "\n":
                i += 2
                continue
            if i + 1 < n:
                segments.append(Segment(source[i + 1], LITERAL))
            in_word = True
            i += 2
        elif ch == "$" and source.startswith("$(", i):
            raise ShellSyntaxError("command substitution is not supported")
        elif ch == "`":
            raise ShellSyntaxError("command substitution is not supported")
        elif ch in ";|&":
            end_word()
            two = source[i:i + 2]
            if two in ("&&", "||"):
                tokens.append(Operator(two))
                i += 2
            elif ch == "&":
                if two == "&>":
                    tokens.append(RedirectToken("&>", 1))
                    i += 2
                else:
                    raise ShellSyntaxError("background jobs are not supported")
            elif two == ";;":
                raise ShellSyntaxError("syntax error near unexpected token `;;'")
            else:
                tokens.append(Operator(ch))
                i += 1
        elif ch in "<>":
            fd = 1 if ch == ">" else 0
            # A lone unquoted digit right before the operator names the fd.
            if in_word and not segments and len(raw_buf) == 1 and raw_buf[0] in "012":
                fd = int(raw_buf[0])
                raw_buf.clear()
                in_word = False
            end_word()
            if ch == ">" and source.startswith(">>", i):
                tokens.append(RedirectToken(">>", fd))
                i += 2
            elif ch == ">" and source.startswith(">&", i):
                tokens.append(RedirectToken(">&", fd))
                i += 2
            else:
                tokens.append(RedirectToken(ch, fd))
                i += 1
        elif ch in "()":
            raise ShellSyntaxError(f"syntax error near unexpected token `{ch}'")
        else:
            raw_buf.append(ch)
            in_word = True
            i += 1

    end_word()
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Redirect:
    op: str
    fd: int
    target: Word


@dataclass
class SimpleCommand:
    words: list[Word] = field(default_factory=list)
    redirects: list[Redirect] = field(default_factory=list)


@dataclass
class ForLoop:
    variable: str
    items: list[Word]
    body: Script
    redirects: list[Redirect] = field(default_factory=list)


Command = Union[SimpleCommand, ForLoop]


@dataclass
class Pipeline:
    commands: list[Command]


@dataclass
class AndOr:
    first: Pipeline
    rest: list[tuple[str, Pipeline]] = field(default_factory=list)


@dataclass
class Script:
    items: list[AndOr] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> Token | None:
        tok = self._peek()
        self._pos += 1
        return tok

    def _at_keyword(self, *keywords: str) -> bool:
        tok = self._peek()
        return isinstance(tok, Word) and tok.plain in keywords

    def _at_operator(self, *values: str) -> bool:
        tok = self._peek()
        return isinstance(tok, Operator) and tok.value in values

    def _skip_separators(self) -> None:
        while self._at_operator(_SEPARATOR):
            self._pos += 1

    def _expect_keyword(self, keyword: str) -> None:
        self._skip_separators()
        if not self._at_keyword(keyword):
            tok = self._peek()
            found = "end of input" if tok is None else f"`{_describe(tok)}'"
            raise ShellSyntaxError(f"syntax error: expected `{keyword}' before {found}")
        self._pos += 1

    def parse_script(self, terminator: str | None = None) -> Script:
        script = Script()
        while True:
            self._skip_separators()
            tok = self._peek()
            if tok is None:
                if terminator is not None:
                    raise ShellSyntaxError(f"syntax error: missing `{terminator}'")
                return script
            if terminator is not None and self._at_keyword(terminator):
                return script
            script.items.append(self._parse_and_or())
            if self._peek() is not None and not self._at_operator(_SEPARATOR):
                if terminator is not None and self._at_keyword(terminator):
                    continue
                raise ShellSyntaxError(
                    f"syntax error near unexpected token `{_describe(self._peek())}'"
                )

    def _parse_and_or(self) -> AndOr:
        node = AndOr(self._parse_pipeline())
        while self._at_operator("&&", "||"):
            op = self._next().value  # type: ignore[union-attr]
            self._skip_separators()
            node.rest.append((op, self._parse_pipeline()))
        return node

    def _parse_pipeline(self) -> Pipeline:
        commands = [self._parse_command()]
        while self._at_operator("|"):
            self._pos += 1
            self._skip_separators()
            commands.append(self._parse_command())
        return Pipeline(commands)

    def _parse_command(self) -> Command:
        if self._at_keyword("for"):
            return self._parse_for()
        cmd = SimpleCommand()
        while True:
            tok = self._peek()
            if isinstance(tok, Word):
                if cmd.words or cmd.redirects or not self._is_reserved(tok):
                    cmd.words.append(tok)
                    self._pos += 1
                    continue
                break
            if isinstance(tok, RedirectToken):
                cmd.redirects.append(self._parse_redirect())
                continue
            break
        if not cmd.words and not cmd.redirects:
            tok = self._peek()
            found = "newline" if tok is None else _describe(tok)
            raise ShellSyntaxError(f"syntax error near unexpected token `{found}'")
        return cmd

    @staticmethod
    def _is_reserved(tok: Word) -> bool:
        return tok.plain in ("do", "done", "in")

    def _parse_redirect(self) -> Redirect:
        tok = self._next()
        assert isinstance(tok, RedirectToken)
        target = self._next()
        if not isinstance(target, Word):
            raise ShellSyntaxError("syntax error near unexpected token `newline'")
        if tok.op == ">&" and target.plain not in ("1", "2"):
            raise ShellSyntaxError(f"{target}: ambiguous redirect")
        return Redirect(tok.op, tok.fd, target)

    def _parse_for(self) -> ForLoop:
        self._pos += 1  # 'for'
        name = self._next()
        if not isinstance(name, Word) or not name.plain or not name.plain.isidentifier():
            raise ShellSyntaxError("syntax error: bad for loop variable")
        items: list[Word] = []
        if self._at_keyword("in"):
            self._pos += 1
            while isinstance(self._peek(), Word) and not self._at_keyword("do"):
                items.append(self._next())  # type: ignore[arg-type]
        self._expect_keyword("do")
        body = self.parse_script(terminator="done")
        self._pos += 1  # 'done'
        loop = ForLoop(name.plain, items, body)
        while isinstance(self._peek(), RedirectToken):
            loop.redirects.append(self._parse_redirect())
        return loop


def _describe(tok: Token | None) -> str:
    if isinstance(tok, Operator):
        return "newline" if tok.value == _SEPARATOR else tok.value
    if isinstance(tok, RedirectToken):
        return tok.op
    return str(tok)


def parse(source: str) -> Script:
    """Parse a command line into a :class:`Script`.

    Raises
    ------
    ShellSyntaxError
        On unbalanced quotes, unsupported constructs or malformed syntax.
    """
    return _Parser(tokenize(source)).parse_script()
