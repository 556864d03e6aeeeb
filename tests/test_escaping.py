"""Tests for argument escaping."""

import shlex

import pytest

from docker_pipeline.core.schemas import ShellDialect
from docker_pipeline.process.escaping import (
    escape_arg,
    escape_posix_arg,
    escape_windows_arg,
    forward_command_line,
    join_args,
)


def windows_argv_parse(command_line: str) -> list[str]:
    """Minimal CommandLineToArgvW parser for checking escaped output."""
    args: list[str] = []
    current: list[str] = []
    in_quotes = False
    has_token = False
    i = 0
    while i < len(command_line):
        c = command_line[i]
        if c == "\\":
            j = i
            while j < len(command_line) and command_line[j] == "\\":
                j += 1
            count = j - i
            if j < len(command_line) and command_line[j] == '"':
                current.append("\\" * (count // 2))
                if count % 2:
                    current.append('"')
                    i = j + 1
                else:
                    i = j
            else:
                current.append("\\" * count)
                i = j
            has_token = True
            continue
        if c == '"':
            in_quotes = not in_quotes
            has_token = True
        elif c.isspace() and not in_quotes:
            if has_token:
                args.append("".join(current))
                current = []
                has_token = False
        else:
            current.append(c)
            has_token = True
        i += 1
    if has_token:
        args.append("".join(current))
    return args


TRICKY = [
    "",
    "plain",
    "two words",
    "it's",
    'say "hi"',
    "C:\\Program Files\\Docker\\",
    'trailing\\"quote',
    "tab\tand\nnewline",
    "$HOME `id` ; rm -rf /",
    "--tag=ghcr.io/acme/api:1.0",
]


class TestPosixEscaping:
    """Tests for POSIX shell quoting."""

    @pytest.mark.parametrize("arg", ["docker", "build", "./src/app", "a-b_c.d", "ghcr.io/acme/api"])
    def test_safe_strings_unchanged(self, arg):
        """Test that strings made only of safe characters pass through."""
        assert escape_posix_arg(arg) == arg

    def test_empty_string_quoted(self):
        """Test that the empty string survives as an argument."""
        assert escape_posix_arg("") == "''"

    def test_embedded_single_quote(self):
        """Test the close-escape-reopen form for embedded quotes."""
        assert escape_posix_arg("it's") == "'it'\\''s'"

    def test_special_characters_quoted(self):
        """Test that characters outside the safe set trigger quoting."""
        assert escape_posix_arg("a b") == "'a b'"
        assert escape_posix_arg("--tag=x:1") == "'--tag=x:1'"

    @pytest.mark.parametrize("arg", TRICKY)
    def test_shell_parses_back_original(self, arg):
        """Test that a POSIX shell reads the escaped token as the original."""
        assert shlex.split(escape_posix_arg(arg)) == [arg]


class TestWindowsEscaping:
    """Tests for Windows command line quoting."""

    @pytest.mark.parametrize("arg", ["docker", "--force-rm", "repo:tag", "it's", "C:/tmp"])
    def test_safe_strings_unchanged(self, arg):
        """Test that strings without whitespace, backslash or quote pass through."""
        assert escape_windows_arg(arg) == arg

    def test_empty_string_quoted(self):
        """Test that the empty string is kept as an empty argument."""
        assert escape_windows_arg("") == '""'

    def test_whitespace_quoted(self):
        """Test that whitespace is wrapped in double quotes."""
        assert escape_windows_arg("two words") == '"two words"'

    def test_embedded_quote(self):
        """Test that an embedded double quote is backslash-escaped."""
        assert escape_windows_arg('a"b') == '"a\\"b"'

    def test_backslashes_before_quote_doubled(self):
        """Test that a backslash run in front of a quote is doubled."""
        assert escape_windows_arg('a\\"b') == '"a\\\\\\"b"'

    def test_trailing_backslashes_doubled(self):
        """Test that trailing backslashes are doubled before the closing quote."""
        assert escape_windows_arg("C:\\dir\\") == '"C:\\dir\\\\"'

    def test_inner_backslashes_literal(self):
        """Test that backslashes not followed by a quote stay single."""
        assert escape_windows_arg("a\\b c") == '"a\\b c"'

    @pytest.mark.parametrize("arg", TRICKY)
    def test_argv_parses_back_original(self, arg):
        """Test that the Windows argv rules read the escaped token as the original."""
        assert windows_argv_parse(escape_windows_arg(arg)) == [arg]


class TestDialects:
    """Tests for dialect dispatch and command line helpers."""

    def test_wsl_uses_posix_rules(self):
        """Test that WSL arguments are escaped for the Linux shell behind wsl.exe."""
        assert escape_arg("it's", ShellDialect.WSL) == escape_posix_arg("it's")

    def test_windows_dispatch(self):
        """Test that the Windows dialect selects Windows quoting."""
        assert escape_arg("a b", ShellDialect.WINDOWS) == '"a b"'

    def test_join_skips_none(self):
        """Test that None entries are dropped from joined command lines."""
        joined = join_args(["rm", None, "my container"], ShellDialect.POSIX)
        assert joined == "rm 'my container'"

    def test_forward_keeps_command_line_verbatim(self):
        """Test that forwarding only prepends the wrapper token."""
        line = "build '--tag=a/b:1' ."
        assert forward_command_line("docker", line) == f"docker {line}"

    def test_forward_empty_command_line(self):
        """Test forwarding an empty command line."""
        assert forward_command_line("docker", "") == "docker"
