"""Annotated report: per-line counts with source text.

Built from the same FileStats as the summary. Every line carries an explicit
``covered`` flag; regions keep their instantiation counts; functions list
every instantiation under its demangled name.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from covpipe.coverage.stats import CoverageCount, FileStats, RegionStat

logger = structlog.get_logger()

SourceReader = Callable[[str], list[str] | None]


@dataclass(frozen=True, slots=True)
class AnnotatedLine:
    number: int
    text: str
    count: int | None  # None when the line is not mapped
    covered: bool
    instantiations: int = 0

    @property
    def mapped(self) -> bool:
        return self.count is not None


@dataclass(frozen=True, slots=True)
class AnnotatedInstantiation:
    symbol: str
    demangled: str
    count: int


@dataclass(frozen=True, slots=True)
class AnnotatedFunction:
    name: str  # demangled name of the first instantiation
    line: int
    covered: bool
    instantiations: tuple[AnnotatedInstantiation, ...]


@dataclass(slots=True)
class AnnotatedFile:
    path: str
    lines: list[AnnotatedLine] = field(default_factory=list)
    regions: list[RegionStat] = field(default_factory=list)
    functions: list[AnnotatedFunction] = field(default_factory=list)
    source_available: bool = True

    @property
    def line_count(self) -> CoverageCount:
        return CoverageCount.of(line.covered for line in self.lines if line.mapped)

    @property
    def region_count(self) -> CoverageCount:
        return CoverageCount.of(r.covered for r in self.regions)

    @property
    def function_count(self) -> CoverageCount:
        return CoverageCount.of(f.covered for f in self.functions)


@dataclass(slots=True)
class AnnotatedReport:
    files: list[AnnotatedFile] = field(default_factory=list)
    objects: tuple[str, ...] = ()

    def totals(self) -> tuple[CoverageCount, CoverageCount, CoverageCount]:
        """Per-file totals summed as (lines, regions, functions)."""
        lines = regions = functions = CoverageCount()
        for f in self.files:
            lines += f.line_count
            regions += f.region_count
            functions += f.function_count
        return lines, regions, functions


def read_source(path: str) -> list[str] | None:
    """Source lines of a file, or None if it cannot be read."""
    try:
        return Path(path).read_text(errors="replace").splitlines()
    except OSError:
        return None


def _line_instantiations(regions: list[RegionStat]) -> dict[int, int]:
    """Most instantiations of any region starting on each line."""
    result: dict[int, int] = {}
    for region in regions:
        line = region.line_start
        result[line] = max(result.get(line, 0), region.instantiations)
    return result


def annotate_file(
    stats: FileStats,
    demangled: Mapping[str, str],
    source: list[str] | None,
) -> AnnotatedFile:
    last_mapped = max(stats.lines, default=0)
    text_lines = source if source is not None else []
    per_line = _line_instantiations(stats.regions)

    lines: list[AnnotatedLine] = []
    for number in range(1, max(len(text_lines), last_mapped) + 1):
        stat = stats.lines.get(number)
        mapped = stat is not None and stat.mapped
        lines.append(
            AnnotatedLine(
                number=number,
                text=text_lines[number - 1] if number <= len(text_lines) else "",
                count=stat.count if mapped else None,
                covered=mapped and stat.covered,
                instantiations=per_line.get(number, 0),
            )
        )

    functions = [
        AnnotatedFunction(
            name=demangled.get(group.instantiations[0].name, group.instantiations[0].name),
            line=group.line,
            covered=group.covered,
            instantiations=tuple(
                AnnotatedInstantiation(
                    symbol=f.name,
                    demangled=demangled.get(f.name, f.name),
                    count=f.count,
                )
                for f in group.instantiations
            ),
        )
        for group in stats.functions
    ]

    return AnnotatedFile(
        path=stats.path,
        lines=lines,
        regions=list(stats.regions),
        functions=functions,
        source_available=source is not None,
    )


def build_annotated(
    files: Mapping[str, FileStats],
    demangled: Mapping[str, str],
    *,
    objects: tuple[str, ...] = (),
    reader: SourceReader = read_source,
) -> AnnotatedReport:
    """Build the annotated report from shared file statistics.

    Args:
        files: Output of ``compute_file_stats``.
        demangled: Raw symbol -> demangled name.
        objects: Objects the coverage was measured from.
        reader: Returns a file's source lines, or None when unavailable.
    """
    annotated: list[AnnotatedFile] = []
    for path, stats in files.items():
        source = reader(path)
        if source is None:
            logger.warning("source_unavailable", path=path)
        annotated.append(annotate_file(stats, demangled, source))
    return AnnotatedReport(files=annotated, objects=objects)
