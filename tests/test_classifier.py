"""Tests for the build log classifier."""

import pytest

from docker_pipeline.buildlog.classifier import BuildLogClassifier, parse_step_line
from docker_pipeline.buildlog.sinks import MemorySink, SinkRecord
from docker_pipeline.core.schemas import Severity
from docker_pipeline.errors import BuildStepError


def classify(lines: list[str]) -> tuple[BuildLogClassifier, MemorySink]:
    sink = MemorySink()
    classifier = BuildLogClassifier(sink)
    for line in lines:
        classifier.process_line(line)
    return classifier, sink


class TestParseStepLine:
    """Tests for step header parsing."""

    def test_plain_message(self):
        """Test a step header carrying a plain message."""
        step = parse_step_line("#4 [2/3] RUN make")
        assert step is not None
        assert step.step_id == 4
        assert step.message == "[2/3] RUN make"
        assert step.severity == Severity.INFORMATION
        assert not step.finished

    def test_timing_line(self):
        """Test that a decimal first word marks a debug timing line."""
        step = parse_step_line("#4 0.512 compiling foo.c")
        assert step.severity == Severity.DEBUG
        assert step.message == "compiling foo.c"

    def test_timing_line_keeps_last_carriage_return_segment(self):
        """Test that only the final visible progress text is kept."""
        step = parse_step_line("#7 1.5 10%\r20%\r30%\r")
        assert step.severity == Severity.DEBUG
        assert step.message == "30%"

    def test_done_line(self):
        """Test that DONE finishes the step without failure."""
        step = parse_step_line("#1 DONE 0.1s")
        assert step.finished
        assert not step.failed
        assert step.severity == Severity.INFORMATION

    @pytest.mark.parametrize("line", ["#3 ERROR failed to fetch", "#3 ERROR: process did not complete"])
    def test_error_line(self, line):
        """Test that ERROR finishes the step with failure."""
        step = parse_step_line(line)
        assert step.finished
        assert step.failed
        assert step.severity == Severity.ERROR

    @pytest.mark.parametrize("line", ["#abc nope", "#12", "  #1 indented", "plain text", ""])
    def test_continuation_lines(self, line):
        """Test that lines without a `#<N> ` prefix are not step headers."""
        assert parse_step_line(line) is None


class TestBuildLogClassifier:
    """Tests for BuildLogClassifier state handling."""

    def test_single_step_done(self):
        """Test that one step opens one scope and DONE closes it."""
        classifier, sink = classify(["#1 importing context", "#1 DONE 0.1s"])

        assert [s.name for s in sink.scopes] == ["1. importing context"]
        assert sink.scopes[0].closed
        assert classifier.scopes[1].closed
        assert classifier.active_scope is None
        assert sink.top_level == []
        assert sink.scope_records("1. importing context") == [
            SinkRecord(Severity.INFORMATION, "DONE 0.1s", "1. importing context")
        ]
        assert not classifier.failed

    def test_continuation_uses_previous_severity(self):
        """Test that a wrapped line goes to the top level at the last severity."""
        _, sink = classify(["#2 something", "   extra wrapped text\r"])

        assert sink.top_level == [SinkRecord(Severity.INFORMATION, "   extra wrapped text")]

    def test_continuation_after_timing_line_is_debug(self):
        """Test that a continuation after a timing line is demoted too."""
        _, sink = classify(["#2 [1/2] RUN build", "#2 0.31 compiling", "still compiling"])
        assert sink.top_level == [SinkRecord(Severity.DEBUG, "still compiling")]

    def test_continuation_before_any_step_is_error(self):
        """Test that output before the first step is reported as an error."""
        classifier, sink = classify(["failed to read dockerfile"])

        assert sink.top_level == [SinkRecord(Severity.ERROR, "failed to read dockerfile")]
        assert classifier.scopes == {}

    def test_blank_continuations_dropped(self):
        """Test that empty separator lines are not forwarded."""
        _, sink = classify(["#1 step", "", "\r"])
        assert sink.top_level == []

    def test_error_step_fails(self):
        """Test that an ERROR step closes the scope and records a failure."""
        classifier, sink = classify(["#3 ERROR failed to fetch"])

        assert sink.scopes[0].name == "3. ERROR failed to fetch"
        assert sink.scopes[0].closed
        assert classifier.failed
        assert classifier.failures[0].step_id == 3

        with pytest.raises(BuildStepError) as exc_info:
            classifier.raise_for_failure()
        assert "3. ERROR failed to fetch" in str(exc_info.value)

    def test_error_reported_in_existing_scope(self):
        """Test that ERROR on an open step is written into that step's scope."""
        classifier, sink = classify(
            [
                "#5 [build 2/4] RUN make",
                "#5 0.512 cc -c foo.c",
                '#5 ERROR: process "/bin/sh -c make" did not complete successfully',
            ]
        )

        records = sink.scope_records("5. [build 2/4] RUN make")
        assert [r.severity for r in records] == [Severity.DEBUG, Severity.ERROR]
        assert records[0].text == "cc -c foo.c"
        assert classifier.failures[0].step_name == "5. [build 2/4] RUN make"

    def test_interleaved_steps(self):
        """Test that concurrent steps keep their own scopes."""
        classifier, sink = classify(
            [
                "#1 [base 1/2] FROM alpine",
                "#2 [deps 1/1] COPY go.mod .",
                "#1 0.2 resolve",
                "#2 DONE 0.0s",
                "#1 DONE 0.4s",
            ]
        )

        assert [s.name for s in sink.scopes] == [
            "1. [base 1/2] FROM alpine",
            "2. [deps 1/1] COPY go.mod .",
        ]
        assert all(s.closed for s in sink.scopes)
        assert len(sink.scope_records("1. [base 1/2] FROM alpine")) == 2

    def test_timing_line_carriage_returns(self):
        """Test that a progress line only keeps the text after the last \\r."""
        _, sink = classify(["#6 [3/3] RUN download", "#6 0.52 0.5s\rfoo\rbar"])
        records = sink.scope_records("6. [3/3] RUN download")
        assert records[-1].text == "bar"

    def test_closed_id_reopens_new_scope(self):
        """Test that a step id seen again after DONE gets a fresh scope."""
        classifier, sink = classify(["#1 first", "#1 DONE 0.0s", "#1 again"])

        assert [s.name for s in sink.scopes] == ["1. first", "1. again"]
        assert not classifier.scopes[1].closed
        assert classifier.active_scope is classifier.scopes[1]

    def test_finish_closes_dangling_scopes(self):
        """Test that finish() closes steps that never reported DONE."""
        classifier, sink = classify(["#1 [1/2] FROM alpine", "#2 [2/2] RUN true"])
        classifier.finish()

        assert all(s.closed for s in sink.scopes)
        assert classifier.active_scope is None
        classifier.raise_for_failure()
