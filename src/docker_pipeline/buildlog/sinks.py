"""Concrete build-log sinks."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from docker_pipeline.buildlog.base import BuildLogSink, LogScopeHandle
from docker_pipeline.core.schemas import Severity

SEVERITY_LEVELS: dict[Severity, int] = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFORMATION: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class _LoggerScope(LogScopeHandle):
    """Scope that prefixes its lines with the scope name."""

    def __init__(self, logger: logging.Logger, name: str) -> None:
        self._adapter = logging.LoggerAdapter(logger, {"step": name})
        self.name = name
        self.closed = False

    def log_line(self, severity: Severity, text: str) -> None:
        if self.closed:
            raise RuntimeError(f"Scope {self.name!r} is closed")
        self._adapter.log(SEVERITY_LEVELS[severity], f"[{self.name}] {text}")

    def close(self) -> None:
        self.closed = True


class LoggerSink(BuildLogSink):
    """Sink that writes to a standard library logger.

    Scopes are rendered as name-prefixed lines; the name is also attached to
    each record as the ``step`` attribute so the JSON formatter can emit it.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("docker_pipeline.build")

    def log_line(self, severity: Severity, text: str) -> None:
        self._logger.log(SEVERITY_LEVELS[severity], text)

    def open_scope(self, name: str) -> LogScopeHandle:
        self._logger.info(f"[{name}]")
        return _LoggerScope(self._logger, name)


@dataclass(frozen=True)
class SinkRecord:
    """One line captured by MemorySink; scope is None at the top level."""

    severity: Severity
    text: str
    scope: str | None = None


class _MemoryScope(LogScopeHandle):
    def __init__(self, sink: MemorySink, name: str) -> None:
        self._sink = sink
        self.name = name
        self.closed = False

    def log_line(self, severity: Severity, text: str) -> None:
        if self.closed:
            raise RuntimeError(f"Scope {self.name!r} is closed")
        self._sink._append(SinkRecord(severity, text, self.name))

    def close(self) -> None:
        self.closed = True


class MemorySink(BuildLogSink):
    """Sink that records everything in memory.

    Safe to share between the stdout and stderr reader threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: list[SinkRecord] = []
        self.scopes: list[_MemoryScope] = []

    def _append(self, record: SinkRecord) -> None:
        with self._lock:
            self.records.append(record)

    def log_line(self, severity: Severity, text: str) -> None:
        self._append(SinkRecord(severity, text))

    def open_scope(self, name: str) -> LogScopeHandle:
        scope = _MemoryScope(self, name)
        with self._lock:
            self.scopes.append(scope)
        return scope

    @property
    def top_level(self) -> list[SinkRecord]:
        """Records written outside any scope."""
        with self._lock:
            return [r for r in self.records if r.scope is None]

    def scope_records(self, name: str) -> list[SinkRecord]:
        with self._lock:
            return [r for r in self.records if r.scope == name]
