"""Subordinate process execution with concurrently drained output streams.

This module spawns one external process per Invocation and:
- Feeds optional stdin text from a helper thread, then closes the pipe
- Drains stdout and stderr on two background threads, line by line
- Waits for exit while honoring a cooperative cancellation event
- Reports killed-by-signal exits as an unknown (None) exit code

Both streams are always read while the caller waits, so a process that
writes more than an OS pipe buffer to either stream never blocks on us.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO

from docker_pipeline.core.constants import (
    PROCESS_POLL_INTERVAL_SECONDS,
    PROCESS_TERMINATE_GRACE_SECONDS,
    READER_JOIN_TIMEOUT_SECONDS,
)
from docker_pipeline.core.schemas import ShellDialect
from docker_pipeline.errors import CommandLineError, ProcessCancelledError, ProcessSpawnError
from docker_pipeline.process.escaping import escape_windows_arg

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]


class StreamName(str, Enum):
    """Origin of a line of process output."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class StreamEvent:
    """A single line of output, ordered within (not across) its stream."""

    stream: StreamName
    sequence: int
    text: str


@dataclass(frozen=True)
class Invocation:
    """Everything needed to start one external process.

    Attributes:
        executable: Program to run (resolved through PATH)
        arguments: Single command line, already escaped for ``dialect``
        dialect: How ``arguments`` reaches the process (split into argv or verbatim)
        working_directory: Optional cwd for the process
        environment: Variables added to (or overriding) the inherited environment
        stdin: Optional text written to stdin before it is closed
        cancel_event: Setting this event terminates the process
    """

    executable: str
    arguments: str = ""
    dialect: ShellDialect = ShellDialect.POSIX
    working_directory: Path | None = None
    environment: Mapping[str, str] = field(default_factory=dict)
    stdin: str | None = field(default=None, repr=False)
    cancel_event: threading.Event | None = field(default=None, compare=False)

    def command_line(self) -> str:
        """Human-readable command line (for logging)."""
        return f"{self.executable} {self.arguments}".rstrip()

    def popen_args(self) -> list[str] | str:
        """Translate the invocation into what subprocess.Popen expects."""
        if self.dialect in (ShellDialect.WINDOWS, ShellDialect.WSL):
            # CreateProcess takes the command line as-is; wsl.exe hands the
            # already POSIX-quoted text to the Linux shell unchanged
            return f"{escape_windows_arg(self.executable)} {self.arguments}".rstrip()
        try:
            return [self.executable, *shlex.split(self.arguments)]
        except ValueError as e:
            raise CommandLineError(self.command_line(), str(e)) from e


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a completed Invocation.

    ``exit_code`` is None when the process ended without a real exit code
    (killed by a signal).
    """

    exit_code: int | None
    stdout: tuple[str, ...] = ()
    stderr: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def normalize_exit_code(returncode: int | None) -> int | None:
    """Map Popen return codes to exit codes; signal deaths become None."""
    if returncode is None or returncode < 0:
        return None
    return returncode


def _decode_line(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    return text


class _StreamReader(threading.Thread):
    """Reads one pipe to EOF, delivering each line to a callback in order."""

    def __init__(self, name: StreamName, pipe: IO[bytes], callback: LineCallback | None) -> None:
        super().__init__(name=f"process-{name.value}", daemon=True)
        self._stream = name
        self._pipe = pipe
        self._callback = callback
        self.events: list[StreamEvent] = []
        self.error: Exception | None = None

    @property
    def lines(self) -> tuple[str, ...]:
        return tuple(event.text for event in self.events)

    def run(self) -> None:
        try:
            for sequence, raw in enumerate(iter(self._pipe.readline, b"")):
                event = StreamEvent(self._stream, sequence, _decode_line(raw))
                self.events.append(event)
                if self._callback is not None:
                    self._callback(event.text)
        except Exception as e:
            # Re-raised on the waiting thread once the process is gone
            self.error = e
            # Keep draining so the child never blocks on a full pipe
            try:
                for _ in iter(self._pipe.readline, b""):
                    pass
            except (OSError, ValueError):
                pass
        finally:
            try:
                self._pipe.close()
            except OSError:
                pass


class ProcessRunner:
    """Runs external processes and streams their output.

    Example:
        ```python
        runner = ProcessRunner()
        result = runner.run(Invocation("docker", "version --format json"))
        if result.success:
            print(result.stdout[0])
        ```
    """

    def __init__(
        self,
        poll_interval: float = PROCESS_POLL_INTERVAL_SECONDS,
        terminate_grace: float = PROCESS_TERMINATE_GRACE_SECONDS,
    ) -> None:
        self.poll_interval = poll_interval
        self.terminate_grace = terminate_grace

    def run(self, invocation: Invocation) -> CommandResult:
        """Run to completion, capturing both streams.

        Raises:
            ProcessSpawnError: If the executable cannot be started
            ProcessCancelledError: If the cancel event fires first
        """
        return self._execute(invocation, None, None)

    def run_streaming(
        self,
        invocation: Invocation,
        on_stdout: LineCallback | None,
        on_stderr: LineCallback | None,
    ) -> int | None:
        """Run to completion, delivering each line to its stream's callback.

        Callbacks for different streams may run concurrently; each callback
        is only ever invoked sequentially. An exception raised by a callback
        is re-raised here after the process has exited.

        Returns:
            Exit code, or None when it is unknown
        """
        return self._execute(invocation, on_stdout, on_stderr).exit_code

    def _execute(
        self,
        invocation: Invocation,
        on_stdout: LineCallback | None,
        on_stderr: LineCallback | None,
    ) -> CommandResult:
        if invocation.cancel_event is not None and invocation.cancel_event.is_set():
            raise ProcessCancelledError(invocation.command_line(), (), ())

        env = None
        if invocation.environment:
            env = {**os.environ, **invocation.environment}

        logger.debug(f"Starting process: {invocation.command_line()}")
        try:
            process = subprocess.Popen(
                invocation.popen_args(),
                cwd=invocation.working_directory,
                env=env,
                stdin=subprocess.PIPE if invocation.stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessSpawnError(invocation.executable, e) from e

        readers = [
            _StreamReader(StreamName.STDOUT, process.stdout, on_stdout),
            _StreamReader(StreamName.STDERR, process.stderr, on_stderr),
        ]
        threads: list[threading.Thread] = [*readers]
        for reader in readers:
            reader.start()

        if invocation.stdin is not None:
            # Written from a helper thread so a child that never reads its input
            # cannot keep us from checking the cancel event
            writer = threading.Thread(
                target=self._feed_stdin,
                args=(process, invocation.stdin),
                name="process-stdin",
                daemon=True,
            )
            writer.start()
            threads.append(writer)

        try:
            cancelled = self._wait(process, invocation.cancel_event)
        except KeyboardInterrupt:
            self._terminate(process)
            raise

        for thread in threads:
            thread.join(timeout=READER_JOIN_TIMEOUT_SECONDS)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not finish; output may be truncated")

        stdout_reader, stderr_reader = readers
        stdout = stdout_reader.lines
        stderr = stderr_reader.lines

        if cancelled:
            raise ProcessCancelledError(invocation.command_line(), stdout, stderr)

        for reader in readers:
            if reader.error is not None:
                raise reader.error

        exit_code = normalize_exit_code(process.returncode)
        status = "unknown" if exit_code is None else exit_code
        logger.debug(f"Process exited with code {status}")
        return CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)

    @staticmethod
    def _feed_stdin(process: subprocess.Popen[bytes], text: str) -> None:
        assert process.stdin is not None
        try:
            process.stdin.write(text.encode("utf-8"))
            process.stdin.flush()
        except (BrokenPipeError, ValueError):
            # Process exited (or was terminated) without reading its input
            pass
        finally:
            try:
                process.stdin.close()
            except OSError:
                pass

    def _wait(self, process: subprocess.Popen[bytes], cancel_event: threading.Event | None) -> bool:
        """Block until exit; returns True when the process was cancelled."""
        while True:
            try:
                process.wait(timeout=self.poll_interval)
                return False
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    self._terminate(process)
                    return True

    def _terminate(self, process: subprocess.Popen[bytes]) -> None:
        logger.warning(f"Cancelling process {process.pid}")
        process.terminate()
        try:
            process.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} ignored terminate; killing")
            process.kill()
            process.wait()
