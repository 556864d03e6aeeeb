"""Core module - configuration and schemas."""

from __future__ import annotations

from docker_pipeline.core.config import ConfigCredentialResolver, credentials_for, load_config
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

__all__ = [
    "AttachedContainer",
    "BUILDKIT_ENVIRONMENT",
    "ConfigCredentialResolver",
    "ContainerId",
    "ContainerInfo",
    "credentials_for",
    "DockerClientType",
    "load_config",
    "PipelineConfig",
    "RegistryCredentials",
    "RegistryResource",
    "Severity",
    "ShellDialect",
    "WSL_FORWARD_TOKEN",
]
