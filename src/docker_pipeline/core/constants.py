"""Shared constants for docker-pipeline.

Centralized constants to avoid duplication and ensure consistency across modules.
"""

from __future__ import annotations

# Executable names per docker client flavor
DOCKER_EXECUTABLE = "docker"
DOCKER_WINDOWS_EXECUTABLE = "docker.exe"
WSL_EXECUTABLE = "wsl.exe"

# Token prepended to every command line forwarded through wsl.exe
WSL_FORWARD_TOKEN = "docker"

# Environment forced on `docker build` so step progress is emitted as plain text
BUILDKIT_ENVIRONMENT = {"DOCKER_BUILDKIT": "1"}

# How often the waiting caller re-checks the cancellation event (seconds)
PROCESS_POLL_INTERVAL_SECONDS = 0.1

# Grace period between terminate() and kill() on cancellation (seconds)
PROCESS_TERMINATE_GRACE_SECONDS = 5.0

# Upper bound for joining stream reader threads after the process exited (seconds)
READER_JOIN_TIMEOUT_SECONDS = 10.0
