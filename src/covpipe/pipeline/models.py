"""Pipeline stages, shared run context and results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from covpipe.build.models import ObjectList
from covpipe.core.errors import CovPipeError
from covpipe.coverage.annotate import AnnotatedReport
from covpipe.coverage.profile import MergedProfileIndex
from covpipe.coverage.snapshots import SnapshotPattern
from covpipe.coverage.summary import SummaryReport


class Stage(StrEnum):
    """Pipeline stages in execution order."""

    COMPILE = "compile"
    DISCOVER = "discover"
    EXECUTE = "execute"
    MERGE = "merge"
    RENDER_SUMMARY = "render_summary"
    RENDER_ANNOTATED = "render_annotated"
    PERSIST = "persist"

    @property
    def exit_code(self) -> int:
        """Process exit status when this stage fails."""
        return _EXIT_CODES[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_EXIT_CODES = {
    Stage.COMPILE: 3,
    Stage.DISCOVER: 4,
    Stage.EXECUTE: 5,
    Stage.MERGE: 6,
    Stage.RENDER_SUMMARY: 7,
    Stage.RENDER_ANNOTATED: 8,
    Stage.PERSIST: 9,
}

_LABELS = {
    Stage.COMPILE: "Compiling instrumented tests",
    Stage.DISCOVER: "Discovering test binaries",
    Stage.EXECUTE: "Running test binaries",
    Stage.MERGE: "Merging profile snapshots",
    Stage.RENDER_SUMMARY: "Rendering summary",
    Stage.RENDER_ANNOTATED: "Rendering annotated report",
    Stage.PERSIST: "Publishing report",
}


class PipelineFailure(Exception):
    """A stage failed; carries the stage and its typed error."""

    def __init__(self, stage: Stage, error: CovPipeError) -> None:
        super().__init__(f"{stage.value}: {error}")
        self.stage = stage
        self.error = error

    @property
    def exit_code(self) -> int:
        return self.stage.exit_code

    def to_dict(self) -> dict[str, object]:
        return {"stage": self.stage.value, **self.error.to_dict()}


@dataclass(frozen=True, slots=True)
class RunContext:
    """Immutable context shared by every stage after discovery.

    The object list is computed exactly once; merge, export and reporting
    all read it from here.
    """

    objects: ObjectList
    pattern: SnapshotPattern
    snapshot_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)

    @property
    def text_index_path(self) -> Path:
        return self.pattern.text_index_path(self.snapshot_dir)

    @property
    def index_path(self) -> Path:
        return self.pattern.index_path(self.snapshot_dir)


@dataclass(slots=True)
class PipelineResult:
    """Outcome of a successful run."""

    objects: ObjectList
    index: MergedProfileIndex
    summary: SummaryReport
    annotated: AnnotatedReport
    published: Path
    stages: list[Stage] = field(default_factory=list)
