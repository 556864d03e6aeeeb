"""Pydantic schemas for docker-pipeline.

This module defines the data contracts shared by the process layer, the
build-log classifier and the docker client facade: client flavors, shell
dialects, registry resource descriptors and the top-level pipeline
configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator


class DockerClientType(str, Enum):
    """Installed docker client flavor."""

    LINUX = "linux"  # docker binary on a POSIX host
    WINDOWS = "windows"  # docker.exe on a Windows host
    WSL = "wsl"  # docker inside WSL, reached through wsl.exe


class ShellDialect(str, Enum):
    """Argument quoting convention of the host process-creation API."""

    POSIX = "posix"
    WINDOWS = "windows"
    WSL = "wsl"


class Severity(str, Enum):
    """Log severity understood by build-log sinks."""

    DEBUG = "debug"
    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"


class RegistryResource(BaseModel):
    """A container repository together with the credentials used to reach it.

    This is the single descriptor the client consumes; whatever shape the
    credentials had upstream, they are resolved into this model once.

    Attributes:
        name: Resource name referenced from the command line (--repository)
        repository: Full repository path, registry host first (e.g. 'ghcr.io/acme/api')
        username: Optional registry user name
        password: Optional inline password
        password_env: Optional environment variable holding the password
    """

    name: str = Field(..., min_length=1, description="Resource identifier")
    repository: str = Field(..., min_length=1, description="Registry host and repository path")
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)
    password_env: str | None = Field(default=None, description="Env var holding the password")

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        """Require a registry host segment in front of the repository path."""
        v = v.strip().rstrip("/")
        if len(v.split("/")) < 2:
            raise ValueError(f'invalid repository format: "{v}" (expected host/path)')
        return v

    @property
    def registry_host(self) -> str:
        """Registry host (first path segment of the repository)."""
        return self.repository.split("/")[0]

    @property
    def short_name(self) -> str:
        """Last path segment, used as the default container name."""
        return self.repository.split("/")[-1]


class PipelineConfig(BaseModel):
    """Top-level configuration loaded from YAML/JSON files."""

    docker_exe_path: str | None = Field(
        default=None, description="Custom docker executable; None uses the detected client"
    )
    client_type: DockerClientType | None = Field(
        default=None, description="Docker client flavor; None auto-detects"
    )
    working_directory: Path = Field(default=Path("."), description="Default working directory")
    registries: list[RegistryResource] = Field(default_factory=list)
    default_timeout_seconds: int | None = Field(
        default=None, ge=1, description="Cancel docker commands running longer than this"
    )
    log_level: str = Field(default="INFO")

    @field_validator("docker_exe_path")
    @classmethod
    def validate_docker_exe_path(cls, v: str | None) -> str | None:
        """Treat the plain 'docker' name as 'use the detected client'."""
        if v is None or v.strip() in ("", "docker"):
            return None
        return v

    def get_registry(self, name: str) -> RegistryResource | None:
        """Look up a registry resource by name (case-insensitive)."""
        for registry in self.registries:
            if registry.name.lower() == name.lower():
                return registry
        return None


@dataclass(frozen=True)
class RegistryCredentials:
    """Credentials resolved for a registry resource."""

    registry_host: str
    username: str
    password: str


@dataclass(frozen=True)
class ContainerId:
    """Repository, tag and (once known) digest of an image."""

    repository: str
    tag: str
    digest: str | None = None
    source: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.repository}:{self.tag}"

    def with_digest(self, digest: str | None) -> ContainerId:
        return ContainerId(self.repository, self.tag, digest, self.source)


@dataclass(frozen=True)
class AttachedContainer:
    """Record handed to the build bookkeeping service."""

    name: str
    tag: str
    digest: str | None
    source: str | None = None

    @classmethod
    def from_container_id(cls, container_id: ContainerId) -> AttachedContainer:
        """Build the record from a container id."""
        return cls(
            name=container_id.repository,
            tag=container_id.tag,
            digest=container_id.digest,
            source=container_id.source,
        )


@dataclass(frozen=True)
class ContainerInfo:
    """A container reported by `docker ps`."""

    name: str
    image: str
    digest: str | None
    created: datetime | None
    state: str
    status: str | None = None
