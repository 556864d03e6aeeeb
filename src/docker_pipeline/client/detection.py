"""Detection of the installed docker client flavor."""

from __future__ import annotations

import logging
import sys

from docker_pipeline.core.constants import (
    DOCKER_EXECUTABLE,
    DOCKER_WINDOWS_EXECUTABLE,
    WSL_EXECUTABLE,
    WSL_FORWARD_TOKEN,
)
from docker_pipeline.core.schemas import DockerClientType, ShellDialect
from docker_pipeline.errors import DockerPipelineError
from docker_pipeline.process.escaping import forward_command_line
from docker_pipeline.process.process_runner import Invocation, ProcessRunner

logger = logging.getLogger(__name__)


def executable_for(client_type: DockerClientType) -> str:
    """Executable that reaches docker for a client flavor."""
    return {
        DockerClientType.LINUX: DOCKER_EXECUTABLE,
        DockerClientType.WINDOWS: DOCKER_WINDOWS_EXECUTABLE,
        DockerClientType.WSL: WSL_EXECUTABLE,
    }[client_type]


def dialect_for(client_type: DockerClientType | None, platform: str = sys.platform) -> ShellDialect:
    """Argument dialect for a client flavor; None means 'whatever the host uses'."""
    if client_type is None:
        return ShellDialect.WINDOWS if platform == "win32" else ShellDialect.POSIX
    return {
        DockerClientType.LINUX: ShellDialect.POSIX,
        DockerClientType.WINDOWS: ShellDialect.WINDOWS,
        DockerClientType.WSL: ShellDialect.WSL,
    }[client_type]


def check_for_docker(runner: ProcessRunner, client_type: DockerClientType) -> str | None:
    """Run `docker -v` for one client flavor.

    Returns:
        The version banner when docker answered with exit code 0, else None
    """
    arguments = "-v"
    if client_type == DockerClientType.WSL:
        arguments = forward_command_line(WSL_FORWARD_TOKEN, arguments)

    invocation = Invocation(
        executable=executable_for(client_type),
        arguments=arguments,
        dialect=dialect_for(client_type),
    )
    try:
        result = runner.run(invocation)
    except DockerPipelineError as e:
        logger.debug(f"{client_type.value} docker client not usable: {e}")
        return None

    if result.exit_code != 0:
        return None
    banner = " ".join(line.strip() for line in result.stdout if line.strip())
    return banner or None


def detect_client_type(
    runner: ProcessRunner, platform: str = sys.platform
) -> DockerClientType | None:
    """Find the installed docker client.

    On Windows, Docker for Windows wins over docker inside WSL when both are
    present.
    """
    if platform == "win32":
        candidates = [DockerClientType.WINDOWS, DockerClientType.WSL]
    else:
        candidates = [DockerClientType.LINUX]

    for client_type in candidates:
        version = check_for_docker(runner, client_type)
        if version is not None:
            logger.debug(f"Detected {client_type.value} docker client: {version}")
            return client_type

    return None
