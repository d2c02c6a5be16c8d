"""Per-file coverage statistics.

Both reports are built from ``compute_file_stats``; neither counts lines,
regions or functions on its own. Rules follow llvm-cov:

- Lines: derived from the file's segments. A line is mapped unless it opens
  a skipped region, and only if the segment wrapping into it has a count or a
  non-gap region with a count starts on it. Its count is the maximum of the
  wrapped count and the counts of regions starting on it.
- Regions: every distinct code region span in the file counts once; its count
  is the sum over the instantiations that contain it.
- Functions: instantiations are grouped by definition site. A function is
  covered when any of its instantiations executed.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from covpipe.coverage.export import CoverageExport, ExportFunction, Segment
from covpipe.coverage.profile import COUNTER_MAX


@dataclass(frozen=True, slots=True)
class CoverageCount:
    """Covered/total pair for one metric."""

    covered: int = 0
    total: int = 0

    @property
    def percent(self) -> float | None:
        """Coverage percentage, or None when nothing is measurable."""
        if self.total == 0:
            return None
        return self.covered / self.total * 100.0

    def __add__(self, other: CoverageCount) -> CoverageCount:
        return CoverageCount(self.covered + other.covered, self.total + other.total)

    @classmethod
    def of(cls, flags: Iterable[bool]) -> CoverageCount:
        """Count from one covered flag per measured item."""
        flags_list = list(flags)
        return cls(covered=sum(flags_list), total=len(flags_list))

    def __str__(self) -> str:
        return f"{self.covered}/{self.total}"


@dataclass(frozen=True, slots=True)
class LineStat:
    line: int
    count: int
    mapped: bool
    has_multiple_regions: bool = False

    @property
    def covered(self) -> bool:
        return self.mapped and self.count > 0


@dataclass(frozen=True, slots=True)
class RegionStat:
    """A code region summed over the instantiations containing it."""

    span: tuple[int, int, int, int]
    count: int
    instantiations: int

    @property
    def covered(self) -> bool:
        return self.count > 0

    @property
    def line_start(self) -> int:
        return self.span[0]

    @property
    def line_end(self) -> int:
        return self.span[2]


@dataclass(frozen=True, slots=True)
class InstantiationGroup:
    """Instantiations of one source-level function."""

    filename: str
    line: int
    col: int
    instantiations: tuple[ExportFunction, ...]

    @property
    def covered(self) -> bool:
        return any(f.count > 0 for f in self.instantiations)

    @property
    def count(self) -> int:
        """Entry count summed over instantiations."""
        return min(sum(f.count for f in self.instantiations), COUNTER_MAX)

    @property
    def symbols(self) -> list[str]:
        return [f.name for f in self.instantiations]


@dataclass(slots=True)
class FileStats:
    """Everything both reports know about one source file."""

    path: str
    lines: dict[int, LineStat] = field(default_factory=dict)
    regions: list[RegionStat] = field(default_factory=list)
    functions: list[InstantiationGroup] = field(default_factory=list)

    @property
    def line_count(self) -> CoverageCount:
        return CoverageCount.of(s.covered for s in self.lines.values() if s.mapped)

    @property
    def region_count(self) -> CoverageCount:
        return CoverageCount.of(r.covered for r in self.regions)

    @property
    def function_count(self) -> CoverageCount:
        return CoverageCount.of(g.covered for g in self.functions)

    @property
    def is_covered(self) -> bool:
        """True when any line of the file executed."""
        return self.line_count.covered > 0


def _is_region_start(segment: Segment) -> bool:
    return segment.has_count and segment.is_region_entry and not segment.is_gap_region


def _line_stat(line: int, line_segments: list[Segment], wrapped: Segment | None) -> LineStat:
    starts = [s for s in line_segments if _is_region_start(s)]
    skipped = bool(line_segments) and (
        not line_segments[0].has_count and line_segments[0].is_region_entry
    )
    mapped = not skipped and ((wrapped is not None and wrapped.has_count) or bool(starts))
    if not mapped:
        return LineStat(line=line, count=0, mapped=False)

    count = wrapped.count if wrapped is not None else 0
    for segment in starts:
        count = max(count, segment.count)
    return LineStat(line=line, count=count, mapped=True, has_multiple_regions=len(starts) > 1)


def iter_line_stats(segments: Iterable[Segment]) -> Iterator[LineStat]:
    """Yield one LineStat per line from the first to the last segment."""
    ordered = sorted(segments, key=lambda s: (s.line, s.col))
    if not ordered:
        return

    by_line: dict[int, list[Segment]] = {}
    for segment in ordered:
        by_line.setdefault(segment.line, []).append(segment)

    wrapped: Segment | None = None
    for line in range(ordered[0].line, ordered[-1].line + 1):
        line_segments = by_line.get(line, [])
        yield _line_stat(line, line_segments, wrapped)
        if line_segments:
            wrapped = line_segments[-1]


def compute_line_stats(segments: Iterable[Segment]) -> dict[int, LineStat]:
    return {stat.line: stat for stat in iter_line_stats(segments)}


def group_instantiations(functions: Iterable[ExportFunction]) -> list[InstantiationGroup]:
    """Group function records by the start of their first code region."""
    groups: dict[tuple[str, int, int], list[ExportFunction]] = {}
    for function in functions:
        code = function.code_regions()
        if not code:
            continue
        _, first = code[0]
        key = (function.filename, first.line_start, first.col_start)
        groups.setdefault(key, []).append(function)

    return [
        InstantiationGroup(filename=k[0], line=k[1], col=k[2], instantiations=tuple(v))
        for k, v in sorted(groups.items())
    ]


def compute_file_stats(export: CoverageExport) -> dict[str, FileStats]:
    """Statistics for every file in an already filtered export, sorted by path."""
    stats: dict[str, FileStats] = {
        f.filename: FileStats(path=f.filename, lines=compute_line_stats(f.segments))
        for f in export.files
    }

    # span -> [count, instantiations], per file
    regions: dict[str, dict[tuple[int, int, int, int], list[int]]] = {}
    for function in export.functions:
        for filename, region in function.code_regions():
            if filename not in stats:
                continue
            entry = regions.setdefault(filename, {}).setdefault(region.span, [0, 0])
            entry[0] = min(entry[0] + region.count, COUNTER_MAX)
            entry[1] += 1

    for filename, spans in regions.items():
        stats[filename].regions = [
            RegionStat(span=span, count=count, instantiations=n)
            for span, (count, n) in sorted(spans.items())
        ]

    for group in group_instantiations(export.functions):
        if group.filename in stats:
            stats[group.filename].functions.append(group)

    return {path: stats[path] for path in sorted(stats)}


def total_counts(files: Iterable[FileStats]) -> tuple[CoverageCount, CoverageCount, CoverageCount]:
    """Aggregate (lines, regions, functions) over files."""
    lines = regions = functions = CoverageCount()
    for f in files:
        lines += f.line_count
        regions += f.region_count
        functions += f.function_count
    return lines, regions, functions
