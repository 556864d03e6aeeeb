"""Configuration loading utilities.

Supports YAML and JSON configuration files with schema validation, and
resolves registry credentials out of a loaded configuration.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml

from docker_pipeline.core.schemas import PipelineConfig, RegistryCredentials, RegistryResource

logger = logging.getLogger(__name__)


def load_config(path: Path | str) -> PipelineConfig:
    """Load and validate a pipeline configuration file.

    Args:
        path: Path to YAML or JSON configuration file

    Returns:
        Validated PipelineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If config is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    return PipelineConfig.model_validate(data or {})


class ConfigCredentialResolver:
    """Resolves registry credentials from a PipelineConfig.

    A password is taken from the inline ``password`` field first, then from the
    environment variable named by ``password_env``.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self._config = config

    def get_resource(self, resource_name: str) -> RegistryResource | None:
        return self._config.get_registry(resource_name)

    def resolve_credentials(self, resource_name: str) -> RegistryCredentials | None:
        resource = self._config.get_registry(resource_name)
        if resource is None:
            logger.debug(f"Registry resource {resource_name!r} is not configured")
            return None
        return credentials_for(resource)


def credentials_for(resource: RegistryResource) -> RegistryCredentials | None:
    """Resolve the credentials of a registry resource, or None when incomplete."""
    if not resource.username:
        return None

    password: str | None = None
    if resource.password is not None:
        password = resource.password.get_secret_value()
    elif resource.password_env:
        password = os.environ.get(resource.password_env)
        if password is None:
            logger.warning(
                f"Environment variable {resource.password_env} for registry "
                f"{resource.name!r} is not set"
            )

    if not password:
        return None

    return RegistryCredentials(
        registry_host=resource.registry_host,
        username=resource.username,
        password=password,
    )
