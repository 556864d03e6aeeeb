"""Process module - argument escaping and subordinate process execution."""

from __future__ import annotations

from docker_pipeline.process.escaping import (
    escape_arg,
    escape_posix_arg,
    escape_windows_arg,
    forward_command_line,
    join_args,
)
from docker_pipeline.process.process_runner import (
    CommandResult,
    Invocation,
    ProcessRunner,
    StreamEvent,
    StreamName,
)

__all__ = [
    "CommandResult",
    "escape_arg",
    "escape_posix_arg",
    "escape_windows_arg",
    "forward_command_line",
    "Invocation",
    "join_args",
    "ProcessRunner",
    "StreamEvent",
    "StreamName",
]
