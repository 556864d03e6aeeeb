"""Classifier for buildkit's plain-text progress output.

`docker build --progress=plain` multiplexes every build step onto stderr,
one line at a time, each prefixed with the step number:

    #5 [build 2/4] RUN make
    #5 0.512 compiling foo.c
    #5 DONE 3.1s
    #6 ERROR: process "/bin/sh -c make" did not complete successfully

Lines that do not carry a `#<N> ` prefix wrap the previous line. The
classifier rebuilds the per-step hierarchy in a single pass, with no
look-ahead: each step gets its own scope in the sink, timing lines are
demoted to debug (keeping only what a terminal would show after `\\r`
overwrites) and DONE/ERROR close the step.

One classifier serves one build invocation and must only be fed from the
stderr stream.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docker_pipeline.buildlog.base import BuildLogSink, LogScopeHandle
from docker_pipeline.core.schemas import Severity
from docker_pipeline.errors import BuildStepError

logger = logging.getLogger(__name__)

_STEP_HEADER = re.compile(r"#(\d+) (.*)", re.DOTALL)
_DECIMAL = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")

DONE_MARKER = "DONE"
ERROR_MARKER = "ERROR"


@dataclass
class LogScope:
    """Classifier-side view of one build step's scope."""

    step_id: int
    name: str
    handle: LogScopeHandle
    severity: Severity = Severity.INFORMATION
    closed: bool = False

    def log(self, severity: Severity, text: str) -> None:
        if self.closed:
            raise RuntimeError(f"Step {self.step_id} is already closed")
        self.severity = severity
        self.handle.log_line(severity, text)

    def close(self, severity: Severity) -> None:
        self.severity = severity
        self.closed = True
        self.handle.close()


@dataclass(frozen=True)
class BuildStepFailure:
    """A step that ended with an ERROR marker."""

    step_id: int
    step_name: str
    message: str


@dataclass(frozen=True)
class StepLine:
    """A parsed step header line."""

    step_id: int
    message: str
    severity: Severity
    finished: bool = False
    failed: bool = False


def parse_step_line(line: str) -> StepLine | None:
    """Parse a `#<N> <content>` line; returns None for continuation lines."""
    match = _STEP_HEADER.fullmatch(line)
    if match is None:
        return None

    step_id = int(match.group(1))
    message = match.group(2)
    first_word, _, remainder = message.partition(" ")

    if _DECIMAL.fullmatch(first_word):
        # Timing line: keep only the final state of \r-overwritten progress
        text = remainder.rstrip("\r")
        text = text[text.rfind("\r") + 1 :]
        return StepLine(step_id, text, Severity.DEBUG)
    if first_word == DONE_MARKER:
        return StepLine(step_id, message, Severity.INFORMATION, finished=True)
    if first_word == ERROR_MARKER or first_word == f"{ERROR_MARKER}:":
        return StepLine(step_id, message, Severity.ERROR, finished=True, failed=True)
    return StepLine(step_id, message, Severity.INFORMATION)


class BuildLogClassifier:
    """Turns build stderr lines into scoped, leveled sink output.

    Example:
        ```python
        classifier = BuildLogClassifier(sink)
        runner.run_streaming(invocation, sink.info, classifier.process_line)
        classifier.finish()
        classifier.raise_for_failure()
        ```
    """

    def __init__(self, sink: BuildLogSink) -> None:
        self._sink = sink
        self._scopes: dict[int, LogScope] = {}
        self.active_scope: LogScope | None = None
        # Severity used for continuation lines that arrive before any step
        self.last_severity: Severity = Severity.ERROR
        self.failures: list[BuildStepFailure] = []

    @property
    def scopes(self) -> dict[int, LogScope]:
        return dict(self._scopes)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def process_line(self, line: str) -> None:
        """Classify one stderr line."""
        step = parse_step_line(line)
        if step is None:
            self._continuation(line)
            return

        scope = self._scopes.get(step.step_id)
        if scope is not None and not scope.closed:
            scope.log(step.severity, step.message)
        else:
            # Unknown id, or a closed id showing up again: (re)open the step
            name = f"{step.step_id}. {step.message}"
            scope = LogScope(
                step_id=step.step_id,
                name=name,
                handle=self._sink.open_scope(name),
                severity=step.severity,
            )
            self._scopes[step.step_id] = scope
        self.active_scope = scope

        if step.finished:
            scope.close(step.severity)
            self.active_scope = None
            if step.failed:
                self.failures.append(BuildStepFailure(step.step_id, scope.name, step.message))

        self.last_severity = step.severity

    def _continuation(self, line: str) -> None:
        text = line.rstrip("\r")
        if not text.strip():
            return
        if not self._scopes:
            logger.debug("Continuation line received before any build step")
        self._sink.log_line(self.last_severity, text)

    def finish(self) -> None:
        """Close scopes the build never marked DONE or ERROR."""
        for scope in self._scopes.values():
            if not scope.closed:
                scope.close(scope.severity)
        self.active_scope = None

    def raise_for_failure(self) -> None:
        """Raise BuildStepError for the first step that reported ERROR."""
        if self.failures:
            failure = self.failures[0]
            raise BuildStepError(failure.step_id, failure.step_name, failure.message)
