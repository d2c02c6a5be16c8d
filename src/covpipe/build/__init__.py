"""Instrumented build and test binary discovery."""

from covpipe.build.compile import BuildOutput, build_environment, read_event_file, run_build
from covpipe.build.discovery import (
    collect_artifacts,
    discover_objects,
    has_coverage_mapping,
    is_debug_symbol_bundle,
    verify_instrumented,
)
from covpipe.build.events import parse_event, parse_event_stream
from covpipe.build.execute import execute_tests
from covpipe.build.models import (
    ArtifactRecord,
    BuildArtifact,
    BuildEvent,
    BuildFinished,
    CompilerMessage,
    ObjectList,
)

__all__ = [
    "ArtifactRecord",
    "BuildArtifact",
    "BuildEvent",
    "BuildFinished",
    "BuildOutput",
    "CompilerMessage",
    "ObjectList",
    "build_environment",
    "collect_artifacts",
    "discover_objects",
    "execute_tests",
    "has_coverage_mapping",
    "is_debug_symbol_bundle",
    "parse_event",
    "parse_event_stream",
    "read_event_file",
    "run_build",
    "verify_instrumented",
]
