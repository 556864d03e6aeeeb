"""Tests for docker client detection."""

from unittest.mock import MagicMock

from docker_pipeline.client.detection import check_for_docker, detect_client_type, dialect_for
from docker_pipeline.core.schemas import DockerClientType, ShellDialect
from docker_pipeline.errors import ProcessSpawnError
from docker_pipeline.process.process_runner import CommandResult


def make_runner(*results):
    runner = MagicMock()
    runner.run.side_effect = list(results)
    return runner


class TestDetectClientType:
    """Tests for detect_client_type."""

    def test_linux(self):
        runner = make_runner(CommandResult(0, ("Docker version 27.0.3, build 7d4bcd8",)))

        assert detect_client_type(runner, platform="linux") == DockerClientType.LINUX
        invocation = runner.run.call_args.args[0]
        assert invocation.executable == "docker"
        assert invocation.arguments == "-v"

    def test_windows_prefers_native_client(self):
        runner = make_runner(CommandResult(0, ("Docker version 27.0.3",)))
        assert detect_client_type(runner, platform="win32") == DockerClientType.WINDOWS
        assert runner.run.call_count == 1

    def test_windows_falls_back_to_wsl(self):
        """Test that docker inside WSL is found when docker.exe is missing."""
        runner = make_runner(
            ProcessSpawnError("docker.exe", FileNotFoundError(2, "not found")),
            CommandResult(0, ("Docker version 27.0.3",)),
        )

        assert detect_client_type(runner, platform="win32") == DockerClientType.WSL
        invocation = runner.run.call_args.args[0]
        assert invocation.executable == "wsl.exe"
        assert invocation.arguments == "docker -v"

    def test_not_found(self):
        runner = make_runner(CommandResult(127, (), ("docker: command not found",)))
        assert detect_client_type(runner, platform="linux") is None


class TestHelpers:
    """Tests for detection helpers."""

    def test_check_for_docker_returns_banner(self):
        runner = make_runner(CommandResult(0, ("Docker version 27.0.3, build 7d4bcd8",)))
        banner = check_for_docker(runner, DockerClientType.LINUX)
        assert banner == "Docker version 27.0.3, build 7d4bcd8"

    def test_check_for_docker_empty_output(self):
        runner = make_runner(CommandResult(0))
        assert check_for_docker(runner, DockerClientType.LINUX) is None

    def test_dialects(self):
        assert dialect_for(DockerClientType.LINUX) == ShellDialect.POSIX
        assert dialect_for(DockerClientType.WINDOWS) == ShellDialect.WINDOWS
        assert dialect_for(DockerClientType.WSL) == ShellDialect.WSL
        assert dialect_for(None, platform="win32") == ShellDialect.WINDOWS
        assert dialect_for(None, platform="linux") == ShellDialect.POSIX
