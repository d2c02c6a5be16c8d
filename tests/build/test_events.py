"""Tests for build-event stream parsing."""

from __future__ import annotations

import json
from typing import Any

import pytest

from covpipe.build.events import parse_event, parse_event_stream
from covpipe.build.models import ArtifactRecord, BuildFinished, CompilerMessage
from covpipe.core.errors import BuildFailure


def artifact(
    filenames: list[str],
    *,
    test: bool = True,
    kind: list[str] | None = None,
    name: str = "stroka",
) -> str:
    record: dict[str, Any] = {
        "reason": "compiler-artifact",
        "package_id": "stroka 0.1.0 (path+file:///ws)",
        "target": {"name": name, "kind": kind or ["lib"]},
        "profile": {"test": test, "debuginfo": 2},
        "filenames": filenames,
        "executable": filenames[0] if test else None,
        "fresh": False,
    }
    return json.dumps(record)


class TestParseEvent:
    def test_compiler_artifact(self) -> None:
        event = parse_event(artifact(["/ws/target/debug/deps/stroka-1a2b"]))

        assert isinstance(event, ArtifactRecord)
        assert event.is_test_profile is True
        assert event.filenames == ("/ws/target/debug/deps/stroka-1a2b",)
        assert event.target_kinds == ("lib",)
        assert event.target_name == "stroka"

    def test_non_test_profile(self) -> None:
        event = parse_event(artifact(["/ws/target/debug/libdep.rlib"], test=False))

        assert isinstance(event, ArtifactRecord)
        assert event.is_test_profile is False

    def test_compiler_message(self) -> None:
        line = json.dumps(
            {
                "reason": "compiler-message",
                "package_id": "stroka",
                "message": {"level": "error", "rendered": "error[E0308]: mismatched types"},
            }
        )

        event = parse_event(line)

        assert isinstance(event, CompilerMessage)
        assert event.is_error
        assert "E0308" in event.rendered

    def test_warning_is_not_error(self) -> None:
        line = json.dumps(
            {"reason": "compiler-message", "message": {"level": "warning", "rendered": "unused"}}
        )

        event = parse_event(line)

        assert isinstance(event, CompilerMessage)
        assert not event.is_error

    def test_internal_compiler_error_is_error(self) -> None:
        assert CompilerMessage(level="error: internal compiler error", rendered="ice").is_error

    @pytest.mark.parametrize(("success", "expected"), [(True, True), (False, False)])
    def test_build_finished(self, success: bool, expected: bool) -> None:
        event = parse_event(json.dumps({"reason": "build-finished", "success": success}))

        assert event == BuildFinished(success=expected)

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "   Compiling stroka v0.1.0",
            json.dumps({"reason": "build-script-executed", "package_id": "x"}),
            json.dumps([1, 2, 3]),
        ],
    )
    def test_lines_without_events(self, line: str) -> None:
        assert parse_event(line) is None

    def test_malformed_artifact_is_build_failure(self) -> None:
        line = json.dumps({"reason": "compiler-artifact", "profile": {"test": True}})

        with pytest.raises(BuildFailure, match="line 4"):
            parse_event(line, line_no=4)


class TestParseEventStream:
    def test_keeps_order_and_skips_noise(self) -> None:
        lines = [
            artifact(["/ws/a"]),
            "warning: something printed by a build script",
            artifact(["/ws/b"], test=False),
            json.dumps({"reason": "build-finished", "success": True}),
        ]

        events = list(parse_event_stream(lines))

        assert len(events) == 3
        assert isinstance(events[0], ArtifactRecord)
        assert events[0].filenames == ("/ws/a",)
        assert events[-1] == BuildFinished(success=True)
