"""Argument escaping for the shells and process-creation APIs docker runs under.

Every function here is pure and total: any string, including the empty one,
escapes to a token that the target dialect parses back into the original.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from docker_pipeline.core.schemas import ShellDialect

_POSIX_SAFE = re.compile(r"[A-Za-z0-9/_.\-]+")


def escape_posix_arg(arg: str) -> str:
    """Quote an argument for a POSIX shell; safe tokens are left bare."""
    if arg and _POSIX_SAFE.fullmatch(arg):
        return arg
    return "'" + arg.replace("'", "'\\''") + "'"


def escape_windows_arg(arg: str) -> str:
    """Quote an argument for the Windows CreateProcess/CommandLineToArgvW rules.

    Backslashes are literal unless they precede a double quote, so only the
    runs in front of an embedded quote or of the closing quote are doubled.
    """
    if arg and not any(c.isspace() or c in '\\"' for c in arg):
        return arg

    out = ['"']
    slashes = 0
    for c in arg:
        if c == "\\":
            slashes += 1
            out.append(c)
        elif c == '"':
            out.append("\\" * slashes)
            out.append('\\"')
            slashes = 0
        else:
            slashes = 0
            out.append(c)
    out.append("\\" * slashes)
    out.append('"')
    return "".join(out)


def escape_arg(arg: str, dialect: ShellDialect) -> str:
    """Escape a single argument for the given dialect.

    WSL command lines are re-parsed by the Linux shell behind wsl.exe, so
    their arguments follow POSIX rules.
    """
    if dialect == ShellDialect.WINDOWS:
        return escape_windows_arg(arg)
    return escape_posix_arg(arg)


def join_args(args: Iterable[str | None], dialect: ShellDialect) -> str:
    """Escape and space-join arguments, skipping None entries."""
    return " ".join(escape_arg(a, dialect) for a in args if a is not None)


def forward_command_line(wrapper_token: str, command_line: str) -> str:
    """Prefix an already-escaped command line with a forwarding token.

    The command line is kept verbatim; only the token is added in front.
    """
    if not command_line:
        return wrapper_token
    return f"{wrapper_token} {command_line}"
