"""Tests for the sandbox parser, interpreter and command set."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_tool_bench.tools.sandbox import COMMANDS, Interpreter, OverlayFs, ShellSyntaxError, parse
from agent_tool_bench.tools.sandbox.parser import ForLoop, RedirectToken, tokenize


@pytest.fixture
def sh(fs_root: Path) -> Interpreter:
    return Interpreter(OverlayFs(fs_root), COMMANDS)


def stdout(sh: Interpreter, source: str) -> str:
    result = sh.run(source)
    return result.stdout


class TestParser:

    def test_and_or_pipeline_structure(self) -> None:
        script = parse("ls | wc -l && echo ok; pwd")
        assert len(script.items) == 2
        first = script.items[0]
        assert len(first.first.commands) == 2
        assert [op for op, _ in first.rest] == ["&&"]

    def test_for_loop(self) -> None:
        script = parse("for f in a b; do echo $f; done > out.txt")
        loop = script.items[0].first.commands[0]
        assert isinstance(loop, ForLoop)
        assert loop.variable == "f"
        assert [str(w) for w in loop.items] == ["a", "b"]
        assert loop.redirects[0].op == ">"

    def test_fd_redirect_tokens(self) -> None:
        tokens = tokenize("grep x 2>&1")
        assert tokens[-2] == RedirectToken(">&", 2)

    def test_digit_inside_word_is_not_fd(self) -> None:
        tokens = tokenize("echo a2>f")
        assert tokens[-2] == RedirectToken(">", 1)

    @pytest.mark.parametrize(
        "source, message",
        [
            ("echo 'unterminated", "unexpected EOF"),
            ('echo "unterminated', "unexpected EOF"),
            ("echo $(ls)", "command substitution is not supported"),
            ("echo `ls`", "command substitution is not supported"),
            ("sleep 1 &", "background jobs are not supported"),
            ("| wc", "syntax error near unexpected token"),
            ("for x in a b; do echo $x", "missing `done'"),
            ("(ls)", "syntax error near unexpected token `('"),
        ],
    )
    def test_syntax_errors(self, source: str, message: str) -> None:
        with pytest.raises(ShellSyntaxError, match=message.replace("(", r"\(").replace("$", r"\$")):
            parse(source)

    def test_comment_ignored(self) -> None:
        assert len(parse("# nothing here").items) == 0


class TestInterpreter:

    def test_syntax_error_is_status_2(self, sh: Interpreter) -> None:
        result = sh.run("echo $(ls)")
        assert result.exit_code == 2
        assert result.stderr == "bash: command substitution is not supported\n"

    def test_and_or(self, sh: Interpreter) -> None:
        assert stdout(sh, "false || echo fallback") == "fallback\n"
        result = sh.run("false && echo never")
        assert result.stdout == ""
        assert result.exit_code == 1

    def test_last_status(self, sh: Interpreter) -> None:
        assert stdout(sh, "false; echo $?") == "1\n"

    def test_quoting(self, sh: Interpreter) -> None:
        assert stdout(sh, "NAME=world; echo \"hello $NAME\" '$NAME'") == "hello world $NAME\n"

    def test_unquoted_variable_splits(self, sh: Interpreter) -> None:
        assert stdout(sh, "DIRS='repos users'; ls -d $DIRS") == "repos\nusers\n"

    def test_prefix_assignment_is_scoped(self, sh: Interpreter) -> None:
        assert stdout(sh, "X=1 true; echo \"[$X]\"") == "[]\n"

    def test_glob_expansion(self, sh: Interpreter) -> None:
        assert stdout(sh, "echo users/*.json") == "users/alice.json users/bob.json\n"

    def test_unmatched_glob_kept(self, sh: Interpreter) -> None:
        assert stdout(sh, "echo users/*.csv") == "users/*.csv\n"

    def test_quoted_glob_not_expanded(self, sh: Interpreter) -> None:
        assert stdout(sh, "echo 'users/*.json'") == "users/*.json\n"

    def test_for_loop_over_glob(self, sh: Interpreter) -> None:
        out = stdout(sh, "for f in users/*.json; do echo $f; done")
        assert out == "users/alice.json\nusers/bob.json\n"

    def test_cd_and_pwd(self, sh: Interpreter) -> None:
        assert stdout(sh, "cd repos/acme && pwd && ls") == "/workspace/repos/acme\ngadgets\nwidgets\n"

    def test_cd_missing(self, sh: Interpreter) -> None:
        result = sh.run("cd nowhere")
        assert result.exit_code == 1
        assert result.stderr == "bash: cd: nowhere: No such file or directory\n"

    def test_stderr_to_stdout(self, sh: Interpreter) -> None:
        result = sh.run("cat missing.json 2>&1")
        assert result.stdout == "cat: missing.json: No such file or directory\n"
        assert result.stderr == ""
        assert result.exit_code == 1

    def test_stderr_to_dev_null(self, sh: Interpreter) -> None:
        result = sh.run("cat missing.json 2>/dev/null")
        assert result.stderr == ""
        assert result.exit_code == 1

    def test_input_redirect(self, sh: Interpreter) -> None:
        assert stdout(sh, "wc -l < users/bob.json") == "6\n"

    def test_bash_c(self, sh: Interpreter) -> None:
        assert stdout(sh, "bash -c 'cd users; ls'; pwd") == "alice.json\nbob.json\n/workspace\n"

    def test_echo_escapes(self, sh: Interpreter) -> None:
        assert stdout(sh, "echo -e 'a\\tb'") == "a\tb\n"
        assert stdout(sh, "echo -n x") == "x"


class TestCommands:

    def test_ls_long(self, sh: Interpreter) -> None:
        lines = stdout(sh, "ls -l users").splitlines()
        assert lines[0].startswith("-r--r--r-- 1 user user")
        assert lines[0].endswith(" alice.json")

    def test_ls_missing(self, sh: Interpreter) -> None:
        result = sh.run("ls nope")
        assert result.exit_code == 2
        assert result.stderr == "ls: cannot access 'nope': No such file or directory\n"

    def test_find_by_name(self, sh: Interpreter) -> None:
        out = stdout(sh, "find repos/acme/gadgets -type f")
        assert out == "repos/acme/gadgets/issues/1.json\nrepos/acme/gadgets/repo.json\n"

    def test_find_maxdepth(self, sh: Interpreter) -> None:
        assert stdout(sh, "find . -maxdepth 1 -type d") == ".\n./repos\n./users\n"

    def test_find_count_pipeline(self, sh: Interpreter) -> None:
        assert stdout(sh, "find repos -name '*.json' | wc -l") == "6\n"

    def test_find_unknown_predicate(self, sh: Interpreter) -> None:
        result = sh.run("find . -exec rm {} ;")
        assert result.exit_code == 2
        assert "unknown predicate" in result.stderr

    def test_grep_recursive_files(self, sh: Interpreter) -> None:
        out = stdout(sh, "grep -rl leak repos")
        assert out == "repos/acme/widgets/issues/1.json\nrepos/acme/widgets/pulls/3.json\n"

    def test_grep_count_and_case(self, sh: Interpreter) -> None:
        assert stdout(sh, "grep -c login users/alice.json") == "1\n"
        assert stdout(sh, "grep -ic MEMORY repos/acme/widgets/issues/1.json") == "1\n"

    def test_grep_no_match_status(self, sh: Interpreter) -> None:
        assert sh.run("grep zebra users/bob.json").exit_code == 1

    def test_grep_line_numbers(self, sh: Interpreter) -> None:
        assert stdout(sh, "grep -n login users/bob.json") == '3:  "login": "bob",\n'

    def test_head_and_tail(self, sh: Interpreter) -> None:
        assert stdout(sh, "head -n 2 users/alice.json") == '{\n  "id": 1,\n'
        assert stdout(sh, "tail -1 users/alice.json") == "}"

    def test_cat_numbered(self, sh: Interpreter) -> None:
        assert stdout(sh, "cat -n users/bob.json | head -1") == "     1\t{\n"

    def test_jq_raw(self, sh: Interpreter) -> None:
        out = stdout(sh, "jq -r .title repos/acme/widgets/issues/2.json")
        assert out == "Crash on startup\n"

    def test_jq_multiple_inputs(self, sh: Interpreter) -> None:
        assert stdout(sh, "jq -r .login users/alice.json users/bob.json") == "alice\nbob\n"

    def test_jq_compact(self, sh: Interpreter) -> None:
        out = stdout(sh, "jq -c '{login, prs_opened}' users/alice.json")
        assert out == '{"login":"alice","prs_opened":1}\n'

    def test_jq_bad_filter(self, sh: Interpreter) -> None:
        result = sh.run("jq '.[' users/alice.json")
        assert result.exit_code == 3
        assert result.stderr.startswith("jq: error:")

    def test_sort_uniq_count(self, sh: Interpreter) -> None:
        out = stdout(sh, "echo -e 'b\\na\\nb' | sort | uniq -c")
        assert out == "      1 a\n      2 b\n"

    def test_sort_numeric_reverse(self, sh: Interpreter) -> None:
        assert stdout(sh, "echo -e '10\\n9\\n100' | sort -rn") == "100\n10\n9\n"

    def test_wc_multiple_files(self, sh: Interpreter) -> None:
        lines = stdout(sh, "wc -l users/alice.json users/bob.json").splitlines()
        assert lines[-1].split() == ["12", "total"]

    def test_invalid_option(self, sh: Interpreter) -> None:
        result = sh.run("sort -Z")
        assert result.exit_code == 2
        assert result.stderr == "sort: invalid option -- 'Z'\n"
