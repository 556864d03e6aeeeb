"""Exceptions raised by docker-pipeline."""

from __future__ import annotations

from collections.abc import Sequence


class DockerPipelineError(Exception):
    """Base class for every error raised by docker-pipeline."""


class ProcessSpawnError(DockerPipelineError):
    """The executable could not be started (missing, not permitted, ...)."""

    def __init__(self, executable: str, cause: OSError) -> None:
        super().__init__(f"Failed to start {executable}: {cause.strerror or cause}")
        self.executable = executable
        self.cause = cause


class ProcessCancelledError(DockerPipelineError):
    """The process was terminated because its cancellation event fired.

    The output captured before termination is preserved.
    """

    def __init__(self, command_line: str, stdout: Sequence[str], stderr: Sequence[str]) -> None:
        super().__init__(f"Cancelled: {command_line}")
        self.command_line = command_line
        self.stdout = tuple(stdout)
        self.stderr = tuple(stderr)


class DockerCommandError(DockerPipelineError):
    """A docker command exited with a non-zero or unknown exit code."""

    def __init__(self, verb: str, exit_code: int | None, stderr: Sequence[str] = ()) -> None:
        self.verb = verb
        self.exit_code = exit_code
        self.stderr = tuple(stderr)
        status = "unknown" if exit_code is None else str(exit_code)
        message = f"docker {verb} failed with exit code {status}"
        details = " ".join(line.strip() for line in self.stderr if line.strip())
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class BuildStepError(DockerPipelineError):
    """A build step reported ERROR, regardless of the process exit code."""

    def __init__(self, step_id: int, step_name: str, message: str = "") -> None:
        self.step_id = step_id
        self.step_name = step_name
        self.message = message
        super().__init__(f'Build step "{step_name}" failed')


class DockerNotFoundError(DockerPipelineError):
    """No docker client was detected on this host."""


class RegistryResourceError(DockerPipelineError):
    """A registry resource cannot be used (unknown name, bad repository...)."""


class CommandLineError(DockerPipelineError):
    """A command line cannot be split into arguments (e.g. an unbalanced quote)."""

    def __init__(self, command_line: str, reason: str) -> None:
        super().__init__(f"Invalid command line ({reason}): {command_line}")
        self.command_line = command_line
        self.reason = reason
