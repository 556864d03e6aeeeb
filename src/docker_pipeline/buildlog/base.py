"""Abstract leveled log sink with nested scopes.

Pipelines plug their own build-log implementation in behind this interface;
the classifier and the docker client only ever talk to it through these
methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docker_pipeline.core.schemas import Severity


class LogScopeHandle(ABC):
    """A nested, named sub-log created by a sink."""

    @abstractmethod
    def log_line(self, severity: Severity, text: str) -> None:
        """Write one line into this scope."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the scope; no lines may be written afterwards."""
        pass


class BuildLogSink(ABC):
    """Top-level leveled log able to open nested scopes.

    Implementations:
    - LoggerSink: forwards to the standard logging module
    - MemorySink: keeps every record in memory, in order
    """

    @abstractmethod
    def log_line(self, severity: Severity, text: str) -> None:
        """Write one line at the top level."""
        pass

    @abstractmethod
    def open_scope(self, name: str) -> LogScopeHandle:
        """Create a nested scope with a display name."""
        pass

    def debug(self, text: str) -> None:
        self.log_line(Severity.DEBUG, text)

    def info(self, text: str) -> None:
        self.log_line(Severity.INFORMATION, text)

    def warning(self, text: str) -> None:
        self.log_line(Severity.WARNING, text)

    def error(self, text: str) -> None:
        self.log_line(Severity.ERROR, text)
