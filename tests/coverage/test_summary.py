"""Tests for the summary report."""

from __future__ import annotations

import io

import pytest
from conftest import MappedFunction, export_payload
from rich.console import Console

from covpipe.build.models import ObjectList
from covpipe.coverage.export import parse_export
from covpipe.coverage.stats import CoverageCount, FileStats, compute_file_stats
from covpipe.coverage.summary import (
    build_summary,
    make_summary_table,
    render_summary,
    summary_to_dict,
)

LIB = "/ws/src/lib.rs"
MAIN = "/ws/src/main.rs"
OBJECTS = ObjectList(("/ws/target/debug/deps/stroka-a", "/ws/target/debug/deps/stroka-b"))


def file_stats() -> dict[str, FileStats]:
    functions = [
        MappedFunction("f", 1, LIB, 1, 3),
        MappedFunction("g", 2, LIB, 10, 1),
        MappedFunction("main", 3, MAIN, 1, 2),
    ]
    counters = {("f", 1): (4, 4, 0), ("g", 2): (0,), ("main", 3): (1, 1)}
    return compute_file_stats(parse_export(export_payload(functions, counters)))


class TestBuildSummary:
    def test_rows_per_file(self) -> None:
        report = build_summary(file_stats(), OBJECTS)

        assert [row.path for row in report.rows] == [LIB, MAIN]
        lib = report.row(LIB)
        assert lib is not None
        assert lib.lines == CoverageCount(2, 4)
        assert lib.regions == CoverageCount(2, 4)
        assert lib.functions == CoverageCount(1, 2)
        assert lib.covered

    def test_totals(self) -> None:
        report = build_summary(file_stats(), OBJECTS)

        assert report.lines == CoverageCount(4, 6)
        assert report.regions == CoverageCount(4, 6)
        assert report.functions == CoverageCount(2, 3)
        assert report.objects == OBJECTS.paths

    def test_unknown_row(self) -> None:
        assert build_summary(file_stats(), OBJECTS).row("/nope.rs") is None

    def test_empty(self) -> None:
        report = build_summary({}, OBJECTS)

        assert report.rows == ()
        assert report.lines.percent is None


class TestSummaryToDict:
    def test_schema(self) -> None:
        data = summary_to_dict(build_summary(file_stats(), OBJECTS))

        assert data["objects"] == list(OBJECTS)
        assert data["files"][1] == {
            "path": MAIN,
            "lines": {"covered": 2, "total": 2, "percent": 100.0},
            "regions": {"covered": 2, "total": 2, "percent": 100.0},
            "functions": {"covered": 1, "total": 1, "percent": 100.0},
        }
        assert data["total"]["lines"]["percent"] == 66.67

    def test_undefined_percent_is_null(self) -> None:
        data = summary_to_dict(build_summary({}, OBJECTS))

        assert data["total"]["functions"] == {"covered": 0, "total": 0, "percent": None}


class TestRenderSummary:
    @pytest.fixture
    def output(self) -> io.StringIO:
        return io.StringIO()

    def test_lists_objects_and_files(self, output: io.StringIO) -> None:
        console = Console(file=output, width=200, no_color=True)
        report = build_summary(file_stats(), OBJECTS)

        render_summary(report, console, use_color=False, root="/ws")

        text = output.getvalue()
        assert "Objects (2):" in text
        assert "/ws/target/debug/deps/stroka-a" in text
        assert "src/lib.rs" in text
        assert "Coverage Summary" in text
        assert "TOTAL" in text
        assert "4/6  66.67%" in text

    def test_paths_outside_root_shown_in_full(self, output: io.StringIO) -> None:
        console = Console(file=output, width=200, no_color=True)
        report = build_summary(file_stats(), OBJECTS)

        render_summary(report, console, use_color=False, root="/other")

        assert LIB in output.getvalue()

    def test_table_colors_by_threshold(self) -> None:
        table = make_summary_table(build_summary(file_stats(), OBJECTS), use_color=True)

        cells = list(table.columns[1].cells)
        assert cells[0].startswith("[yellow]")
        assert cells[1].startswith("[green]")
        assert table.columns[1].footer.startswith("[yellow]")

    def test_no_color_has_no_markup(self) -> None:
        table = make_summary_table(build_summary(file_stats(), OBJECTS), use_color=False)

        assert not any("[" in cell for cell in table.columns[1].cells)
