"""Parsing of `docker images` / `docker ps` JSON lines."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docker_pipeline.core.schemas import ContainerInfo

logger = logging.getLogger(__name__)


class DockerImageRecord(BaseModel):
    """One line of `docker images --format json`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default="", alias="ID")
    repository: str = Field(default="", alias="Repository")
    tag: str = Field(default="", alias="Tag")


class DockerContainerRecord(BaseModel):
    """One line of `docker ps --format json`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    names: str = Field(default="", alias="Names")
    image: str = Field(default="", alias="Image")
    state: str = Field(default="", alias="State")
    status: str | None = Field(default=None, alias="Status")
    created_at: str | None = Field(default=None, alias="CreatedAt")


def parse_docker_timestamp(value: str | None) -> datetime | None:
    """Parse docker's `2024-01-02 15:04:05 +0000 UTC` timestamps."""
    if not value:
        return None
    parts = value.split(" ")
    if len(parts) < 3:
        return None
    try:
        return datetime.strptime(" ".join(parts[:3]), "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        logger.debug(f"Unrecognized docker timestamp: {value!r}")
        return None


def _parse_lines(lines: Iterable[str], model: type[BaseModel]) -> list:
    records = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            records.append(model.model_validate_json(line))
        except ValidationError as e:
            logger.warning(f"Skipping unparseable docker output line: {e}")
    return records


def build_container_inventory(
    image_lines: Iterable[str], container_lines: Iterable[str]
) -> list[ContainerInfo]:
    """Join images and containers into ContainerInfo records.

    Containers whose image digest is unknown are only reported while running.
    """
    digests: dict[str, str] = {}
    for image in _parse_lines(image_lines, DockerImageRecord):
        if not image.id or not image.repository or not image.tag:
            continue
        digests[f"{image.repository}:{image.tag}"] = image.id

    containers: list[ContainerInfo] = []
    for container in _parse_lines(container_lines, DockerContainerRecord):
        if not container.image or not container.names or not container.state:
            continue

        digest = digests.get(container.image)
        if digest is None and container.state != "running":
            continue

        containers.append(
            ContainerInfo(
                name=container.names,
                image=container.image,
                digest=digest,
                created=parse_docker_timestamp(container.created_at),
                state=container.state,
                status=container.status,
            )
        )

    return containers
