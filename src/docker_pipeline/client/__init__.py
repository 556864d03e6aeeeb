"""Client module - docker client detection and the command facade."""

from __future__ import annotations

from docker_pipeline.client.detection import (
    check_for_docker,
    detect_client_type,
    dialect_for,
    executable_for,
)
from docker_pipeline.client.docker_client import ContainerAttacher, CredentialResolver, DockerClient
from docker_pipeline.client.inventory import (
    DockerContainerRecord,
    DockerImageRecord,
    build_container_inventory,
    parse_docker_timestamp,
)

__all__ = [
    "build_container_inventory",
    "check_for_docker",
    "ContainerAttacher",
    "CredentialResolver",
    "detect_client_type",
    "dialect_for",
    "DockerClient",
    "DockerContainerRecord",
    "DockerImageRecord",
    "executable_for",
    "parse_docker_timestamp",
]
