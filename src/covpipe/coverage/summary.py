"""Summary report: per-file and aggregate counts.

Output schema of ``summary_to_dict``:
{
    "objects": [str, ...],
    "files": [
        {
            "path": str,
            "lines": {"covered": int, "total": int, "percent": float | null},
            "regions": {...},
            "functions": {...}
        },
        ...
    ],
    "total": {"lines": {...}, "regions": {...}, "functions": {...}}
}
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rich.console import Console
from rich.table import Table

from covpipe.build.models import ObjectList
from covpipe.coverage.stats import CoverageCount, FileStats, total_counts

HIGH_THRESHOLD = 80.0
MEDIUM_THRESHOLD = 50.0


@dataclass(frozen=True, slots=True)
class SummaryRow:
    path: str
    lines: CoverageCount
    regions: CoverageCount
    functions: CoverageCount

    @property
    def covered(self) -> bool:
        return self.lines.covered > 0


@dataclass(frozen=True, slots=True)
class SummaryReport:
    rows: tuple[SummaryRow, ...]
    objects: tuple[str, ...]
    lines: CoverageCount
    regions: CoverageCount
    functions: CoverageCount

    def row(self, path: str) -> SummaryRow | None:
        for r in self.rows:
            if r.path == path:
                return r
        return None


def build_summary(files: Mapping[str, FileStats], objects: ObjectList) -> SummaryReport:
    """Build the summary from shared file statistics."""
    rows = tuple(
        SummaryRow(
            path=path,
            lines=stats.line_count,
            regions=stats.region_count,
            functions=stats.function_count,
        )
        for path, stats in files.items()
    )
    lines, regions, functions = total_counts(files.values())
    return SummaryReport(
        rows=rows,
        objects=tuple(objects),
        lines=lines,
        regions=regions,
        functions=functions,
    )


def _count_dict(count: CoverageCount) -> dict[str, Any]:
    percent = count.percent
    return {
        "covered": count.covered,
        "total": count.total,
        "percent": round(percent, 2) if percent is not None else None,
    }


def summary_to_dict(report: SummaryReport) -> dict[str, Any]:
    return {
        "objects": list(report.objects),
        "files": [
            {
                "path": row.path,
                "lines": _count_dict(row.lines),
                "regions": _count_dict(row.regions),
                "functions": _count_dict(row.functions),
            }
            for row in report.rows
        ],
        "total": {
            "lines": _count_dict(report.lines),
            "regions": _count_dict(report.regions),
            "functions": _count_dict(report.functions),
        },
    }


def _style_for(percent: float | None) -> str:
    if percent is None:
        return "dim"
    if percent >= HIGH_THRESHOLD:
        return "green"
    if percent >= MEDIUM_THRESHOLD:
        return "yellow"
    return "red"


def _cell(count: CoverageCount, *, use_color: bool) -> str:
    percent = count.percent
    text = f"{count.covered}/{count.total}"
    text += f" {percent:6.2f}%" if percent is not None else "      -"
    if not use_color:
        return text
    style = _style_for(percent)
    return f"[{style}]{text}[/{style}]"


def _display_path(path: str, root: str | None) -> str:
    if root and path.startswith(root.rstrip(os.sep) + os.sep):
        return os.path.relpath(path, root)
    return path


def make_summary_table(
    report: SummaryReport,
    *,
    use_color: bool = True,
    root: str | None = None,
) -> Table:
    table = Table(title="Coverage Summary", show_footer=True, pad_edge=False)
    table.add_column("File", footer="TOTAL", style="cyan" if use_color else None)
    for name, total in (
        ("Lines", report.lines),
        ("Regions", report.regions),
        ("Functions", report.functions),
    ):
        table.add_column(name, justify="right", footer=_cell(total, use_color=use_color))

    for row in report.rows:
        table.add_row(
            _display_path(row.path, root),
            _cell(row.lines, use_color=use_color),
            _cell(row.regions, use_color=use_color),
            _cell(row.functions, use_color=use_color),
        )
    return table


def render_summary(
    report: SummaryReport,
    console: Console | None = None,
    *,
    use_color: bool = True,
    root: str | None = None,
) -> None:
    """Print the summary table, listing the objects it was measured from."""
    console = console or Console(no_color=not use_color, highlight=False)
    console.print(f"Objects ({len(report.objects)}):", highlight=False)
    for obj in report.objects:
        console.print(f"  {obj}", highlight=False)
    console.print(make_summary_table(report, use_color=use_color, root=root))
