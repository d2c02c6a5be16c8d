"""Profile merging and coverage reporting.

Merge side: snapshots (text or binary) are parsed into FunctionRecords and
summed into a MergedProfileIndex. Render side: llvm-cov export output is
filtered once, reduced to per-file statistics, and presented as a summary
table and an annotated HTML report.
"""

from covpipe.coverage.annotate import (
    AnnotatedFile,
    AnnotatedFunction,
    AnnotatedLine,
    AnnotatedReport,
    build_annotated,
)
from covpipe.coverage.demangle import demangle_symbols
from covpipe.coverage.export import CoverageExport, parse_export, run_export
from covpipe.coverage.filters import PathFilter
from covpipe.coverage.html_report import render_html, write_annotated
from covpipe.coverage.merge import merge, merge_profiles, merge_snapshots, write_index
from covpipe.coverage.profdata import ProfdataTool
from covpipe.coverage.profile import FunctionRecord, MergedProfileIndex, ProfileSnapshot
from covpipe.coverage.proftext import format_proftext, parse_proftext
from covpipe.coverage.reconcile import reconcile
from covpipe.coverage.snapshots import SnapshotPattern, load_snapshot
from covpipe.coverage.stats import CoverageCount, FileStats, compute_file_stats
from covpipe.coverage.summary import (
    SummaryReport,
    build_summary,
    render_summary,
    summary_to_dict,
)

__all__ = [
    # Merge
    "FunctionRecord",
    "MergedProfileIndex",
    "ProfdataTool",
    "ProfileSnapshot",
    "SnapshotPattern",
    "format_proftext",
    "load_snapshot",
    "merge",
    "merge_profiles",
    "merge_snapshots",
    "parse_proftext",
    "write_index",
    # Render
    "AnnotatedFile",
    "AnnotatedFunction",
    "AnnotatedLine",
    "AnnotatedReport",
    "CoverageCount",
    "CoverageExport",
    "FileStats",
    "PathFilter",
    "SummaryReport",
    "build_annotated",
    "build_summary",
    "compute_file_stats",
    "demangle_symbols",
    "parse_export",
    "reconcile",
    "render_html",
    "render_summary",
    "run_export",
    "summary_to_dict",
    "write_annotated",
]
