"""llvm-cov export parsing.

``llvm-cov export -format=text`` emits JSON::

    {"type": "llvm.coverage.json.export", "version": "2.0.1",
     "data": [{"files": [{"filename": ..., "segments": [[...], ...]}],
               "functions": [{"name": ..., "count": ..., "filenames": [...],
                              "regions": [[...], ...]}]}]}

Segments are ``[line, col, count, has_count, is_region_entry, is_gap_region]``
(older exporters omit the gap flag). Regions are ``[line_start, col_start,
line_end, col_end, count, file_id, expanded_file_id, kind]``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

import structlog

from covpipe.build.models import ObjectList
from covpipe.core.errors import RenderFailure
from covpipe.toolchain.runner import ToolError, ToolNotFoundError, ToolRunner

logger = structlog.get_logger()

EXPORT_TYPE = "llvm.coverage.json.export"


class RegionKind(IntEnum):
    CODE = 0
    EXPANSION = 1
    SKIPPED = 2
    GAP = 3
    BRANCH = 4


@dataclass(frozen=True, slots=True)
class Segment:
    """A point where the active region changes."""

    line: int
    col: int
    count: int
    has_count: bool
    is_region_entry: bool
    is_gap_region: bool = False


@dataclass(frozen=True, slots=True)
class Region:
    line_start: int
    col_start: int
    line_end: int
    col_end: int
    count: int
    file_id: int
    expanded_file_id: int
    kind: RegionKind

    @property
    def span(self) -> tuple[int, int, int, int]:
        return (self.line_start, self.col_start, self.line_end, self.col_end)


@dataclass(frozen=True, slots=True)
class ExportFunction:
    """One compiled instantiation of a function."""

    name: str  # mangled linker symbol
    count: int  # entry count
    filenames: tuple[str, ...]
    regions: tuple[Region, ...]

    @property
    def filename(self) -> str:
        """File the function is defined in."""
        return self.filenames[0] if self.filenames else ""

    def code_regions(self) -> list[tuple[str, Region]]:
        """Code regions with the file each belongs to."""
        return [
            (self.filenames[r.file_id], r)
            for r in self.regions
            if r.kind == RegionKind.CODE and r.file_id < len(self.filenames)
        ]


@dataclass(frozen=True, slots=True)
class ExportFile:
    filename: str
    segments: tuple[Segment, ...]


@dataclass(frozen=True, slots=True)
class CoverageExport:
    """Coverage mapping of every object, joined with the merged counters."""

    files: tuple[ExportFile, ...] = ()
    functions: tuple[ExportFunction, ...] = ()
    version: str = ""
    # Fingerprint of the object list the export was produced from
    object_fingerprint: str | None = field(default=None, compare=False)


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RenderFailure.invalid_export(f"{what} is not an integer: {value!r}")
    return value


def _parse_segment(raw: Any) -> Segment:
    if not isinstance(raw, list) or len(raw) not in (5, 6):
        raise RenderFailure.invalid_export(f"malformed segment {raw!r}")
    return Segment(
        line=_int(raw[0], "segment line"),
        col=_int(raw[1], "segment column"),
        count=_int(raw[2], "segment count"),
        has_count=bool(raw[3]),
        is_region_entry=bool(raw[4]),
        is_gap_region=bool(raw[5]) if len(raw) == 6 else False,
    )


def _parse_region(raw: Any) -> Region:
    if not isinstance(raw, list) or len(raw) < 8:
        raise RenderFailure.invalid_export(f"malformed region {raw!r}")
    try:
        kind = RegionKind(_int(raw[7], "region kind"))
    except ValueError:
        raise RenderFailure.invalid_export(f"unknown region kind {raw[7]}") from None
    return Region(
        line_start=_int(raw[0], "region line"),
        col_start=_int(raw[1], "region column"),
        line_end=_int(raw[2], "region end line"),
        col_end=_int(raw[3], "region end column"),
        count=_int(raw[4], "region count"),
        file_id=_int(raw[5], "region file id"),
        expanded_file_id=_int(raw[6], "region expanded file id"),
        kind=kind,
    )


def _parse_function(raw: Any) -> ExportFunction:
    if not isinstance(raw, dict) or "name" not in raw:
        raise RenderFailure.invalid_export("function record without a name")
    return ExportFunction(
        name=str(raw["name"]),
        count=_int(raw.get("count", 0), "function count"),
        filenames=tuple(str(f) for f in raw.get("filenames", [])),
        regions=tuple(_parse_region(r) for r in raw.get("regions", [])),
    )


def _parse_file(raw: Any) -> ExportFile:
    if not isinstance(raw, dict) or "filename" not in raw:
        raise RenderFailure.invalid_export("file record without a filename")
    return ExportFile(
        filename=str(raw["filename"]),
        segments=tuple(_parse_segment(s) for s in raw.get("segments", [])),
    )


def parse_export(payload: str | dict[str, Any]) -> CoverageExport:
    """Parse llvm-cov export output.

    Raises:
        RenderFailure: If the payload is not a coverage export.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise RenderFailure.invalid_export(f"not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise RenderFailure.invalid_export("top level is not an object")
    if payload.get("type", EXPORT_TYPE) != EXPORT_TYPE:
        raise RenderFailure.invalid_export(f"unexpected export type {payload.get('type')!r}")

    data = payload.get("data")
    if not isinstance(data, list):
        raise RenderFailure.invalid_export("missing data array")

    files: list[ExportFile] = []
    functions: list[ExportFunction] = []
    for unit in data:
        if not isinstance(unit, dict):
            raise RenderFailure.invalid_export("data entry is not an object")
        files.extend(_parse_file(f) for f in unit.get("files", []))
        functions.extend(_parse_function(f) for f in unit.get("functions", []))

    return CoverageExport(
        files=tuple(files),
        functions=tuple(functions),
        version=str(payload.get("version", "")),
    )


def run_export(
    runner: ToolRunner,
    index_path: Path,
    objects: ObjectList,
    *,
    llvm_cov: str = "llvm-cov",
    ignore_filename_regex: str | None = None,
    cwd: Path | None = None,
) -> CoverageExport:
    """Run ``llvm-cov export`` over every object against the indexed profile.

    Raises:
        RenderFailure: If llvm-cov is missing, fails, or emits invalid JSON.
    """
    args = [llvm_cov, "export", "-format=text", f"-instr-profile={index_path}"]
    if ignore_filename_regex:
        args.append(f"-ignore-filename-regex={ignore_filename_regex}")
    args.extend(objects.as_llvm_args())

    try:
        result = runner.run(args, cwd=cwd)
    except ToolNotFoundError as e:
        raise RenderFailure.tool_missing(llvm_cov) from e
    except ToolError as e:
        raise RenderFailure.tool_failed(llvm_cov, e.reason) from e
    if not result.ok:
        raise RenderFailure.tool_failed(
            llvm_cov, result.stderr_tail() or f"exit status {result.returncode}"
        )

    export = parse_export(result.stdout)
    logger.debug(
        "coverage_exported",
        files=len(export.files),
        functions=len(export.functions),
        objects=len(objects),
    )
    return CoverageExport(
        files=export.files,
        functions=export.functions,
        version=export.version,
        object_fingerprint=objects.fingerprint,
    )
