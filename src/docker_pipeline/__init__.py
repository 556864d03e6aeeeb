"""Docker Pipeline - docker CLI execution and build log classification."""

from __future__ import annotations

from docker_pipeline.buildlog import BuildLogClassifier, BuildLogSink, LoggerSink, MemorySink
from docker_pipeline.client import DockerClient
from docker_pipeline.core.schemas import (
    ContainerId,
    DockerClientType,
    PipelineConfig,
    RegistryResource,
    Severity,
    ShellDialect,
)
from docker_pipeline.errors import (
    BuildStepError,
    DockerCommandError,
    DockerPipelineError,
    ProcessCancelledError,
)
from docker_pipeline.process import Invocation, ProcessRunner

__version__ = "0.1.0"

__all__ = [
    "BuildLogClassifier",
    "BuildLogSink",
    "BuildStepError",
    "ContainerId",
    "DockerClient",
    "DockerClientType",
    "DockerCommandError",
    "DockerPipelineError",
    "Invocation",
    "LoggerSink",
    "MemorySink",
    "PipelineConfig",
    "ProcessCancelledError",
    "ProcessRunner",
    "RegistryResource",
    "Severity",
    "ShellDialect",
    "__version__",
]
