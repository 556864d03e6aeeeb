"""CLI for Docker Pipeline.

Provides a rich command-line interface using Typer for:
- Building and pushing images
- Pulling, running and stopping containers
- Running arbitrary docker commands with build log classification
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docker_pipeline.buildlog.sinks import LoggerSink
from docker_pipeline.client.docker_client import DockerClient
from docker_pipeline.core.config import ConfigCredentialResolver, load_config
from docker_pipeline.core.schemas import PipelineConfig
from docker_pipeline.errors import DockerPipelineError, RegistryResourceError
from docker_pipeline.utils.logging import setup_logging

app = typer.Typer(
    name="docker-pipeline",
    help="Docker CLI execution for build pipelines",
    add_completion=False,
)

console = Console()


@dataclass
class CliState:
    """Options shared by every command."""

    config: PipelineConfig
    repository: str | None = None
    timeout: int | None = None


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to pipeline configuration file (YAML/JSON)"
    ),
    repository: str | None = typer.Option(
        None, "--repository", "-r", help="Registry resource to log into for the command"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file in addition to console"
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format (for programmatic parsing)"
    ),
    timeout: int | None = typer.Option(
        None, "--timeout", "-t", min=1, help="Cancel the docker command after this many seconds"
    ),
) -> None:
    """Run docker commands with leveled, per-step build logs."""
    setup_logging(
        level=log_level, log_file=log_file, json_format=json_logs, rich_console=not json_logs
    )

    if ctx.invoked_subcommand == "init-config":
        return

    pipeline_config = PipelineConfig()
    if config is not None:
        try:
            pipeline_config = load_config(config)
        except Exception as e:
            console.print(f"[bold red]Error loading config: {escape(str(e))}[/]")
            raise typer.Exit(1) from e

    ctx.obj = CliState(
        config=pipeline_config,
        repository=repository,
        timeout=timeout or pipeline_config.default_timeout_seconds,
    )


@contextmanager
def _docker_session(state: CliState) -> Iterator[DockerClient]:
    """Create a client, log into the selected registry and log out afterwards.

    A --timeout is composed from a timer that sets the client's cancel event.
    """
    cancel_event = threading.Event()
    timer: threading.Timer | None = None
    if state.timeout:
        timer = threading.Timer(state.timeout, cancel_event.set)
        timer.daemon = True
        timer.start()

    try:
        client = DockerClient.create(LoggerSink(), state.config, cancel_event=cancel_event)
        try:
            if state.repository:
                resolver = ConfigCredentialResolver(state.config)
                if resolver.get_resource(state.repository) is None:
                    raise RegistryResourceError(
                        f'Registry resource "{state.repository}" is not configured'
                    )
                client.login_resource(state.repository, resolver)
            yield client
        finally:
            client.logout()
    finally:
        if timer is not None:
            timer.cancel()


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except DockerPipelineError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")
        raise typer.Exit(1) from e


def _default_repository(state: CliState) -> str | None:
    """Repository of the registry resource selected with --repository."""
    if state.repository:
        resource = state.config.get_registry(state.repository)
        if resource is not None:
            return resource.repository
    return None


@app.command()
def build(
    ctx: typer.Context,
    repository: str | None = typer.Option(
        None, "--name", "-n", help="Image repository (defaults to the --repository resource)"
    ),
    tag: str = typer.Option("latest", "--tag", help="Image tag"),
    context_dir: Path = typer.Option(Path("."), "--context", "-d", help="Build context directory"),
    build_arg: list[str] = typer.Option(
        [], "--build-arg", help="Build-time variable (KEY=VALUE), repeatable"
    ),
    push: bool = typer.Option(False, "--push", help="Push the image after a successful build"),
) -> None:
    """Build an image with per-step build logs."""
    state: CliState = ctx.obj
    repository = repository or _default_repository(state)
    if not repository:
        console.print("[bold red]Error:[/] Missing option '--name' (or a configured --repository).")
        raise typer.Exit(1)
    additional = [f"--build-arg={arg}" for arg in build_arg]

    console.print(f"[bold blue]Building image {repository}:{tag}...[/]")
    with _reporting_errors(), _docker_session(state) as client:
        image = client.build(repository, tag, context_dir, additional)
        digest = client.get_digest(image.full_name)
        if push:
            client.push(image.full_name)

    console.print(f"[bold green]Successfully built {image.full_name}[/]")
    if digest:
        console.print(f"[dim]{digest}[/]")


@app.command()
def push(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image to push (repository:tag)"),
) -> None:
    """Push an image to its registry."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.push(image)
    console.print(f"[bold green]Pushed {image}[/]")


@app.command()
def pull(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image to pull (repository:tag)"),
) -> None:
    """Pull an image from its registry."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.pull(image)
    console.print(f"[bold green]Pulled {image}[/]")


@app.command()
def run(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image to run (repository:tag)"),
    name: str | None = typer.Option(None, "--name", "-n", help="Container name"),
    rm: bool = typer.Option(False, "--rm", help="Remove the container when it exits"),
    detach: bool = typer.Option(True, "--detach/--attach", help="Run in the background"),
    restart: str | None = typer.Option(None, "--restart", help="Restart policy"),
    pull_first: bool = typer.Option(True, "--pull/--no-pull", help="Pull the image first"),
) -> None:
    """Start a container from an image."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        options = {"remove_on_exit": rm, "detach": detach, "restart": restart}
        if pull_first:
            client.pull_and_run(image, name, **options)
        else:
            client.run(image, name, **options)
    console.print(f"[bold green]Started {name or image}[/]")


@app.command("exec")
def exec_(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name or id"),
    command: str = typer.Argument(..., help="Command line to execute in the container"),
    workdir: str | None = typer.Option(None, "--workdir", "-w", help="Working directory"),
    detach: bool = typer.Option(False, "--detach", help="Run the command in the background"),
) -> None:
    """Run a command inside a running container."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.exec(container, command, workdir=workdir, detach=detach)


@app.command()
def stop(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name or id"),
    remove: bool = typer.Option(False, "--remove", help="Remove the container after stopping it"),
    strict: bool = typer.Option(False, "--strict", help="Fail if the container does not exist"),
) -> None:
    """Stop (and optionally remove) a container."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.stop_and_remove(container, remove=remove, fail_if_missing=strict)
    console.print(f"[bold green]Stopped {container}[/]")


@app.command()
def tag(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Existing image (repository:tag)"),
    target: str = typer.Argument(..., help="New image reference"),
    push: bool = typer.Option(False, "--push", help="Push the new tag"),
) -> None:
    """Tag an image, optionally pushing the new tag."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.tag(source, target)
        if push:
            client.push(target)
    console.print(f"[bold green]Tagged {source} as {target}[/]")


@app.command()
def command(
    ctx: typer.Context,
    verb: str = typer.Argument(..., help="Docker command (e.g. 'system prune')"),
    arguments: str = typer.Argument("", help="Arguments, passed through as written"),
) -> None:
    """Run an arbitrary docker command."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        client.command(verb, arguments)


@app.command()
def containers(ctx: typer.Context) -> None:
    """List containers together with their image digests."""
    state: CliState = ctx.obj
    with _reporting_errors(), _docker_session(state) as client:
        infos = client.get_containers()

    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Image", style="white")
    table.add_column("State", style="green")
    table.add_column("Digest", style="dim")
    for info in infos:
        table.add_row(info.name, info.image, info.state, info.digest or "N/A")
    console.print(table)


@app.command()
def init_config(
    output: Path = typer.Option(
        Path("docker-pipeline.yaml"), "--output", "-o", help="Output configuration file"
    ),
) -> None:
    """Generate a sample configuration file."""
    sample_config = """\
# Docker Pipeline Configuration

# Docker client: linux, windows or wsl (omit to auto-detect)
# client_type: linux

# Custom docker executable (overrides client_type)
# docker_exe_path: /usr/local/bin/docker

working_directory: "."

# Cancel docker commands running longer than this
default_timeout_seconds: 3600

# Registries, selected with --repository <name>
registries:
  - name: ghcr
    repository: ghcr.io/acme/api
    username: ci-bot
    # Password is read from this environment variable at login time
    password_env: GHCR_TOKEN
"""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sample_config)
    console.print(f"[bold green]Sample configuration written to {output}[/]")


if __name__ == "__main__":
    app()
