"""Docker CLI facade for automation pipelines.

This module exposes the docker verbs a pipeline needs and composes, for each
of them, argument escaping, process execution and log forwarding:
- stdout lines go to the sink at information level
- stderr of `build` goes through BuildLogClassifier, so every build step gets
  its own scope and an ERROR step fails the build even when docker exits 0
- stderr of other verbs goes to the sink as errors (warnings when the caller
  opted out of failing)

It also owns the registry session: at most one registry is logged in per
client, and logout only ever talks to that registry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from docker_pipeline.buildlog.base import BuildLogSink
from docker_pipeline.buildlog.classifier import BuildLogClassifier
from docker_pipeline.client.detection import detect_client_type, dialect_for, executable_for
from docker_pipeline.client.inventory import build_container_inventory
from docker_pipeline.core.config import credentials_for
from docker_pipeline.core.constants import BUILDKIT_ENVIRONMENT, WSL_FORWARD_TOKEN
from docker_pipeline.core.schemas import (
    AttachedContainer,
    ContainerId,
    ContainerInfo,
    DockerClientType,
    PipelineConfig,
    RegistryCredentials,
    RegistryResource,
    Severity,
    ShellDialect,
)
from docker_pipeline.errors import (
    DockerCommandError,
    DockerNotFoundError,
    ProcessSpawnError,
)
from docker_pipeline.process.escaping import escape_arg, forward_command_line, join_args
from docker_pipeline.process.process_runner import CommandResult, Invocation, ProcessRunner

logger = logging.getLogger(__name__)


class CredentialResolver(Protocol):
    """Supplies registry credentials for a resource name."""

    def resolve_credentials(self, resource_name: str) -> RegistryCredentials | None: ...


class ContainerAttacher(Protocol):
    """Build bookkeeping service that records which images a build produced."""

    def attach(self, container: AttachedContainer) -> None: ...

    def deactivate(self, container: AttachedContainer) -> None: ...


class DockerClient:
    """Runs docker CLI verbs and reports their output to a build-log sink.

    Example:
        ```python
        client = DockerClient.create(LoggerSink())
        client.login("ghcr.io", "ci-bot", token)
        try:
            image = client.build("ghcr.io/acme/api", "1.4.0", Path("./src"))
            client.push(image.full_name)
        finally:
            client.logout()
        ```
    """

    def __init__(
        self,
        sink: BuildLogSink,
        client_type: DockerClientType | None = DockerClientType.LINUX,
        docker_exe_path: str | None = None,
        runner: ProcessRunner | None = None,
        working_directory: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            sink: Where command output is reported
            client_type: Installed client flavor (ignored when docker_exe_path is set)
            docker_exe_path: Custom docker executable
            runner: Process runner (a default one is created when omitted)
            working_directory: Default working directory for commands
            cancel_event: Setting this event cancels the running command
        """
        self.sink = sink
        self.runner = runner or ProcessRunner()
        self.working_directory = working_directory
        self.cancel_event = cancel_event
        self._logged_in_registry: str | None = None

        if docker_exe_path:
            self.client_type: DockerClientType | None = None
            self.executable = docker_exe_path
        else:
            if client_type is None:
                raise ValueError("client_type is required when docker_exe_path is not given")
            self.client_type = client_type
            self.executable = executable_for(client_type)
        self.dialect = dialect_for(self.client_type)

    @classmethod
    def create(
        cls,
        sink: BuildLogSink,
        config: PipelineConfig | None = None,
        runner: ProcessRunner | None = None,
        cancel_event: threading.Event | None = None,
    ) -> DockerClient:
        """Create a client from configuration, detecting the docker flavor if needed.

        Raises:
            DockerNotFoundError: If no docker client is installed
        """
        config = config or PipelineConfig()
        runner = runner or ProcessRunner()

        if config.docker_exe_path:
            logger.debug(f"Using custom docker executable {config.docker_exe_path}")
            client_type = None
        elif config.client_type is not None:
            client_type = config.client_type
        else:
            client_type = detect_client_type(runner)
            if client_type is None:
                raise DockerNotFoundError("A Docker client was not detected on this server.")

        return cls(
            sink,
            client_type=client_type,
            docker_exe_path=config.docker_exe_path,
            runner=runner,
            working_directory=config.working_directory,
            cancel_event=cancel_event,
        )

    @property
    def logged_in_registry(self) -> str | None:
        return self._logged_in_registry

    def escape_arg(self, arg: str) -> str:
        return escape_arg(arg, self.dialect)

    def _join(self, args: Sequence[str | None]) -> str:
        return join_args(args, self.dialect)

    def _invocation(
        self,
        arguments: str,
        working_directory: Path | None = None,
        environment: dict[str, str] | None = None,
        stdin: str | None = None,
        cancellable: bool = True,
    ) -> Invocation:
        if self.dialect == ShellDialect.WSL:
            arguments = forward_command_line(WSL_FORWARD_TOKEN, arguments)
        return Invocation(
            executable=self.executable,
            arguments=arguments,
            dialect=self.dialect,
            working_directory=working_directory or self.working_directory,
            environment=environment or {},
            stdin=stdin,
            cancel_event=self.cancel_event if cancellable else None,
        )

    # ------------------------------------------------------------------
    # Generic execution
    # ------------------------------------------------------------------

    def docker(
        self,
        arguments: str,
        *,
        process_build_errors: bool = False,
        fail_on_errors: bool = True,
        working_directory: Path | None = None,
        environment: dict[str, str] | None = None,
    ) -> int | None:
        """Run `docker <arguments>`, streaming its output to the sink.

        Args:
            arguments: Escaped argument string, verb first
            process_build_errors: Decode stderr as buildkit step progress
            fail_on_errors: Raise on a non-zero/unknown exit code; when False,
                stderr is reported as warnings instead of errors
            working_directory: Overrides the client's working directory
            environment: Extra environment variables

        Returns:
            The exit code (None when unknown)

        Raises:
            DockerCommandError: On a non-zero/unknown exit code (fail_on_errors)
            BuildStepError: When a build step reported ERROR
        """
        verb = arguments.split(" ", 1)[0] if arguments else ""
        stderr_lines: list[str] = []
        classifier: BuildLogClassifier | None = None

        if process_build_errors:
            classifier = BuildLogClassifier(self.sink)

        def on_stderr(line: str) -> None:
            stderr_lines.append(line)
            if classifier is not None:
                classifier.process_line(line)
            elif fail_on_errors:
                self.sink.error(line)
            else:
                self.sink.warning(line)

        self.sink.debug(f"Executing docker {arguments}")
        try:
            exit_code = self.runner.run_streaming(
                self._invocation(arguments, working_directory, environment),
                self.sink.info,
                on_stderr,
            )
        finally:
            if classifier is not None:
                classifier.finish()

        if classifier is not None:
            classifier.raise_for_failure()

        if fail_on_errors and exit_code != 0:
            raise DockerCommandError(verb, exit_code, stderr_lines)

        status = "unknown" if exit_code is None else exit_code
        self.sink.debug(f"Docker exited with code: {status}")
        return exit_code

    def _read_lines(self, verb: str, arguments: str) -> list[str]:
        """Run a query command and return its stdout lines."""
        result = self.runner.run(self._invocation(f"{verb} {arguments}".rstrip()))
        if result.exit_code != 0:
            raise DockerCommandError(verb, result.exit_code, result.stderr)
        return list(result.stdout)

    def command(self, command: str, arguments: str = "") -> int | None:
        """Run an arbitrary docker command line (`docker <command> <arguments>`).

        Both parts are passed through as written; stderr is decoded as build
        progress since the command may well be a build.
        """
        return self.docker(f"{command} {arguments}".strip(), process_build_errors=True)

    # ------------------------------------------------------------------
    # Registry session
    # ------------------------------------------------------------------

    def login(self, registry: str, username: str, password: str) -> None:
        """Log into a registry; the password travels over stdin, never argv.

        Raises:
            ValueError: If any value is empty
            DockerCommandError: If docker login fails
        """
        if not registry:
            raise ValueError("registry is required")
        if not username:
            raise ValueError("username is required")
        if not password:
            raise ValueError("password is required")

        arguments = f"login {self._join([registry, '--username', username, '--password-stdin'])}"
        self.sink.debug(f"Executing docker login (user: {username}, server: {registry})")
        result = self.runner.run(self._invocation(arguments, stdin=password))

        for line in (*result.stdout, *result.stderr):
            if line.strip():
                self.sink.debug(line)

        if result.exit_code != 0:
            raise DockerCommandError("login", result.exit_code, result.stderr)

        self._logged_in_registry = registry

    def login_resource(
        self, resource: RegistryResource | str, resolver: CredentialResolver | None = None
    ) -> bool:
        """Log in with the credentials of a registry resource.

        A resource without usable credentials is skipped with a warning, since
        public registries work anonymously.

        Returns:
            True if a login was performed
        """
        if isinstance(resource, RegistryResource):
            credentials = credentials_for(resource)
            name = resource.name
        else:
            if resolver is None:
                raise ValueError("a resolver is required to log in by resource name")
            credentials = resolver.resolve_credentials(resource)
            name = resource

        if credentials is None:
            self.sink.warning(
                f'No credentials are specified for registry "{name}"; skipping docker login.'
            )
            return False

        self.login(credentials.registry_host, credentials.username, credentials.password)
        return True

    def logout(self) -> None:
        """Log out of the registry logged into by login(), if any.

        Best-effort: failures are reported as warnings and the session is
        cleared either way. Logout ignores the cancel event, so a cancelled
        pipeline still releases its registry credentials.
        """
        registry = self._logged_in_registry
        if not registry:
            return

        try:
            invocation = self._invocation(f"logout {self.escape_arg(registry)}", cancellable=False)
            result = self.runner.run(invocation)
            severity = Severity.DEBUG if result.exit_code == 0 else Severity.WARNING
            for line in (*result.stdout, *result.stderr):
                if line.strip():
                    self.sink.log_line(severity, line)
            if result.exit_code != 0:
                status = "unknown" if result.exit_code is None else result.exit_code
                self.sink.warning(f"Docker logout failed with exit code {status}")
        except ProcessSpawnError as e:
            self.sink.warning(f"Docker logout failed: {e}")
        finally:
            self._logged_in_registry = None

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    def build(
        self,
        repository: str,
        tag: str,
        context_dir: Path | None = None,
        additional_args: Sequence[str] = (),
        environment: dict[str, str] | None = None,
    ) -> ContainerId:
        """Build an image from the Dockerfile in context_dir.

        Raises:
            BuildStepError: If any build step reported ERROR
            DockerCommandError: If docker exits non-zero
        """
        args = self._join(
            [
                "build",
                "--force-rm",
                "--progress=plain",
                f"--tag={repository}:{tag}",
                *additional_args,
                ".",
            ]
        )
        self.docker(
            args,
            process_build_errors=True,
            working_directory=context_dir,
            environment={**BUILDKIT_ENVIRONMENT, **(environment or {})},
        )
        return ContainerId(repository, tag)

    def push(self, image: str) -> None:
        self.docker(self._join(["push", image]))

    def pull(self, image: str) -> None:
        self.docker(self._join(["pull", image]))

    def tag(self, source: str, target: str) -> None:
        self.docker(self._join(["tag", source, target]))

    def run(
        self,
        image: str,
        name: str | None = None,
        *,
        remove_on_exit: bool = False,
        detach: bool = True,
        restart: str | None = None,
        run_args: Sequence[str] = (),
        additional_args: Sequence[str] = (),
    ) -> int | None:
        """Start a container from an image.

        Args:
            image: Image reference (repository:tag)
            name: Container name
            remove_on_exit: Pass --rm
            detach: Pass -d
            restart: Restart policy (no, on-failure, always, unless-stopped)
            run_args: Options rendered from a run configuration
            additional_args: Extra docker run options
        """
        args: list[str | None] = ["run"]
        if name:
            args += ["--name", name]
        args += list(run_args)
        if restart:
            args.append(f"--restart={restart}")
        if remove_on_exit:
            args.append("--rm")
        if detach:
            args.append("-d")
        args += list(additional_args)
        args.append(image)
        return self.docker(self._join(args))

    def pull_and_run(self, image: str, name: str | None = None, **run_options) -> int | None:
        """Pull the image, then run it (always starting from the latest pushed image)."""
        self.pull(image)
        return self.run(image, name, **run_options)

    def exec(
        self,
        container: str,
        command: str,
        *,
        workdir: str | None = None,
        interactive: bool = True,
        detach: bool = False,
        additional_args: Sequence[str] = (),
    ) -> int | None:
        """Run a command in a running container.

        ``command`` is a shell-style command line appended as written.
        """
        args: list[str | None] = ["exec"]
        if detach:
            args.append("--detach")
        if interactive:
            args.append("--interactive")
        if workdir:
            args += ["--workdir", workdir]
        args += list(additional_args)
        args.append(container)
        return self.docker(f"{self._join(args)} {command}".rstrip())

    def stop(self, container: str, *, fail_if_missing: bool = False) -> int | None:
        """Stop a container; a missing container only warns unless fail_if_missing."""
        return self.docker(self._join(["stop", container]), fail_on_errors=fail_if_missing)

    def rm(
        self, container: str, *, force: bool = False, fail_if_missing: bool = False
    ) -> int | None:
        args = ["rm", "--force" if force else None, container]
        return self.docker(self._join(args), fail_on_errors=fail_if_missing)

    def stop_and_remove(
        self, container: str, *, remove: bool = True, fail_if_missing: bool = False
    ) -> None:
        self.stop(container, fail_if_missing=fail_if_missing)
        if remove:
            self.rm(container, fail_if_missing=fail_if_missing)

    def inspect(self, target: str, format: str | None = None) -> list[str]:
        """Run `docker inspect` and return its output lines."""
        args: list[str | None] = []
        if format is not None:
            args.append(f"--format={format}")
        args.append(target)
        return self._read_lines("inspect", self._join(args))

    def get_digest(self, image: str) -> str | None:
        """Return the image id of repository:tag, or None when unavailable.

        Anything other than exactly one output line counts as unavailable;
        some tools print nothing at all for an unknown tag.
        """
        arguments = f"inspect --format={self.escape_arg('{{.Id}}')} {self.escape_arg(image)}"
        result: CommandResult = self.runner.run(self._invocation(arguments))
        if result.exit_code != 0:
            return None
        lines = [line for line in result.stdout if line.strip()]
        if len(lines) != 1:
            logger.debug(f"inspect returned {len(lines)} lines instead of 1 for {image}")
            return None
        return lines[0].strip()

    def get_containers(self) -> list[ContainerInfo]:
        """List containers together with the digest of their image."""
        images = self._read_lines("images", "--format json --no-trunc")
        containers = self._read_lines("ps", "-a --format json --no-trunc")
        return build_container_inventory(images, containers)

    # ------------------------------------------------------------------
    # Build bookkeeping
    # ------------------------------------------------------------------

    def attach_to_build(
        self, attacher: ContainerAttacher, container_id: ContainerId
    ) -> AttachedContainer:
        """Record an image (with its digest) against the current build."""
        digest = self.get_digest(container_id.full_name)
        self.sink.debug(f"Image digest: {digest}")
        attached = AttachedContainer.from_container_id(container_id.with_digest(digest))
        attacher.attach(attached)
        return attached

    def deactivate_attached(self, attacher: ContainerAttacher, container_id: ContainerId) -> None:
        attacher.deactivate(AttachedContainer.from_container_id(container_id))
