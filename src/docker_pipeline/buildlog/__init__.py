"""Buildlog module - leveled sinks and the build progress classifier.

Provides:
- BuildLogSink / LogScopeHandle: the sink interface pipelines implement
- LoggerSink, MemorySink: bundled sink implementations
- BuildLogClassifier: decoder for `docker build --progress=plain` stderr
"""

from __future__ import annotations

from docker_pipeline.buildlog.base import BuildLogSink, LogScopeHandle
from docker_pipeline.buildlog.classifier import (
    BuildLogClassifier,
    BuildStepFailure,
    LogScope,
    StepLine,
    parse_step_line,
)
from docker_pipeline.buildlog.sinks import SEVERITY_LEVELS, LoggerSink, MemorySink, SinkRecord

__all__ = [
    "BuildLogClassifier",
    "BuildLogSink",
    "BuildStepFailure",
    "LoggerSink",
    "LogScope",
    "LogScopeHandle",
    "MemorySink",
    "parse_step_line",
    "SEVERITY_LEVELS",
    "SinkRecord",
    "StepLine",
]
