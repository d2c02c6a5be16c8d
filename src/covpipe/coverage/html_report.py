"""Self-contained HTML rendering of the annotated report."""

from __future__ import annotations

import html
import os
from pathlib import Path

from covpipe.core.errors import RenderFailure
from covpipe.coverage.annotate import AnnotatedFile, AnnotatedLine, AnnotatedReport
from covpipe.coverage.stats import CoverageCount, RegionStat

_CSS = """
body { font-family: -apple-system, "Segoe UI", Roboto, sans-serif; margin: 20px; }
h1 { font-size: 1.4em; }
table.summary { border-collapse: collapse; margin-bottom: 24px; }
table.summary td, table.summary th { padding: 2px 10px; border-bottom: 1px solid #ddd; }
table.summary td.num { text-align: right; font-family: monospace; }
.cov-high { color: #2e7d32; }
.cov-med { color: #ef6c00; }
.cov-low { color: #c62828; }
section.file { margin-bottom: 32px; }
table.source { border-collapse: collapse; font-family: monospace; font-size: 13px; width: 100%; }
table.source td { padding: 0 6px; white-space: pre; vertical-align: top; }
td.line-no, td.line-count { text-align: right; color: #888; user-select: none; }
tr.line-hit td.line-src { background: #e8f5e9; }
tr.line-miss td.line-src { background: #ffebee; }
ul.functions { font-family: monospace; font-size: 13px; }
table.regions { border-collapse: collapse; font-family: monospace; font-size: 13px; }
table.regions td, table.regions th { padding: 0 8px; text-align: right; }
tr.region-miss td { color: #c62828; }
.miss { color: #c62828; }
"""


def _coverage_class(count: CoverageCount) -> str:
    percent = count.percent
    if percent is None:
        return ""
    if percent >= 80:
        return "cov-high"
    if percent >= 50:
        return "cov-med"
    return "cov-low"


def _count_cell(count: CoverageCount) -> str:
    percent = count.percent
    shown = f"{percent:.2f}%" if percent is not None else "-"
    return (
        f'<td class="num {_coverage_class(count)}">'
        f"{count.covered}/{count.total} ({shown})</td>"
    )


def _anchor(path: str) -> str:
    return "f-" + "".join(c if c.isalnum() else "-" for c in path)


def _render_line(line: AnnotatedLine) -> str:
    if not line.mapped:
        row_class, count = "line-none", ""
    elif line.covered:
        row_class, count = "line-hit", str(line.count)
    else:
        row_class, count = "line-miss", "0"
    title = f' title="{line.instantiations} instantiations"' if line.instantiations > 1 else ""
    return (
        f'<tr class="{row_class}" data-covered="{str(line.covered).lower()}"{title}>'
        f'<td class="line-no">{line.number}</td>'
        f'<td class="line-count">{count}</td>'
        f'<td class="line-src">{html.escape(line.text)}</td></tr>'
    )


def _render_regions(regions: list[RegionStat]) -> str:
    rows = ["<tr><th>Region</th><th>Count</th><th>Instantiations</th></tr>"]
    for region in regions:
        line_start, col_start, line_end, col_end = region.span
        row_class = "region-hit" if region.covered else "region-miss"
        rows.append(
            f'<tr class="{row_class}" data-region-covered="{str(region.covered).lower()}">'
            f"<td>{line_start}:{col_start}-{line_end}:{col_end}</td>"
            f'<td class="num">{region.count}</td>'
            f'<td class="num">{region.instantiations}</td></tr>'
        )
    return '<table class="regions">\n' + "\n".join(rows) + "\n</table>"


def _render_file(f: AnnotatedFile) -> str:
    parts = [f'<section class="file" id="{_anchor(f.path)}">', f"<h2>{html.escape(f.path)}</h2>"]
    if not f.source_available:
        parts.append("<p><em>Source not available.</em></p>")

    if f.functions:
        parts.append('<ul class="functions">')
        for fn in f.functions:
            cls = "" if fn.covered else ' class="miss"'
            insts = ", ".join(
                f"{html.escape(i.demangled)}: {i.count}" for i in fn.instantiations
            )
            parts.append(
                f"<li{cls}>{html.escape(fn.name)} (line {fn.line}, "
                f"{len(fn.instantiations)} instantiations) [{insts}]</li>"
            )
        parts.append("</ul>")

    if f.regions:
        parts.append(_render_regions(f.regions))

    parts.append('<table class="source">')
    parts.extend(_render_line(line) for line in f.lines)
    parts.append("</table></section>")
    return "\n".join(parts)


def render_html(report: AnnotatedReport, *, title: str = "Coverage Report") -> str:
    """Render the whole report as one HTML document."""
    lines, regions, functions = report.totals()

    rows = [
        "<tr><th>File</th><th>Lines</th><th>Regions</th><th>Functions</th></tr>",
    ]
    for f in report.files:
        rows.append(
            f'<tr><td><a href="#{_anchor(f.path)}">{html.escape(f.path)}</a></td>'
            f"{_count_cell(f.line_count)}{_count_cell(f.region_count)}"
            f"{_count_cell(f.function_count)}</tr>"
        )
    rows.append(
        f"<tr><th>TOTAL</th>{_count_cell(lines)}{_count_cell(regions)}"
        f"{_count_cell(functions)}</tr>"
    )

    objects = "".join(f"<li>{html.escape(o)}</li>" for o in report.objects)
    body = "\n".join(_render_file(f) for f in report.files)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{html.escape(title)}</title>
<style>{_CSS}</style>
</head>
<body>
<h1>{html.escape(title)}</h1>
<ul class="objects">{objects}</ul>
<table class="summary">
{chr(10).join(rows)}
</table>
{body}
</body>
</html>
"""


def write_annotated(report: AnnotatedReport, path: Path, *, title: str = "Coverage Report") -> Path:
    """Write the report to ``path`` in one step."""
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(render_html(report, title=title), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise RenderFailure.write_failed(str(path), str(e)) from e
    return path
