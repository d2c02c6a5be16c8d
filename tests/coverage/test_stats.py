"""Tests for per-file coverage statistics."""

from __future__ import annotations

import pytest

from covpipe.coverage.export import (
    CoverageExport,
    ExportFile,
    ExportFunction,
    Region,
    RegionKind,
    Segment,
)
from covpipe.coverage.profile import COUNTER_MAX
from covpipe.coverage.stats import (
    CoverageCount,
    compute_file_stats,
    compute_line_stats,
    group_instantiations,
    total_counts,
)

LIB = "/ws/src/lib.rs"
UTIL = "/ws/src/util.rs"


def seg(
    line: int, col: int, count: int, has_count: bool, entry: bool, gap: bool = False
) -> Segment:
    return Segment(line, col, count, has_count, entry, gap)


def code(ls: int, cs: int, le: int, ce: int, count: int, file_id: int = 0) -> Region:
    return Region(ls, cs, le, ce, count, file_id, 0, RegionKind.CODE)


def function(
    name: str, count: int, *regions: Region, filenames: tuple[str, ...] = (LIB,)
) -> ExportFunction:
    return ExportFunction(name=name, count=count, filenames=filenames, regions=regions)


class TestCoverageCount:
    def test_percent(self) -> None:
        assert CoverageCount(1, 4).percent == 25.0

    def test_percent_undefined_without_total(self) -> None:
        assert CoverageCount(0, 0).percent is None

    def test_add(self) -> None:
        assert CoverageCount(1, 2) + CoverageCount(3, 5) == CoverageCount(4, 7)

    def test_of_flags(self) -> None:
        assert CoverageCount.of([True, False, True]) == CoverageCount(2, 3)

    def test_str(self) -> None:
        assert str(CoverageCount(3, 9)) == "3/9"


class TestLineStats:
    def test_region_spanning_lines(self) -> None:
        stats = compute_line_stats([seg(1, 1, 5, True, True), seg(3, 2, 0, False, False)])

        assert [(s.line, s.count, s.mapped) for s in stats.values()] == [
            (1, 5, True),
            (2, 5, True),
            (3, 5, True),
        ]

    def test_multiple_regions_take_max(self) -> None:
        stats = compute_line_stats(
            [seg(1, 1, 2, True, True), seg(1, 5, 7, True, True), seg(1, 9, 0, False, False)]
        )

        assert stats[1].count == 7
        assert stats[1].has_multiple_regions

    def test_gap_region_does_not_start_a_line(self) -> None:
        stats = compute_line_stats(
            [
                seg(1, 1, 5, True, True),
                seg(2, 1, 0, True, True, gap=True),
                seg(3, 1, 0, True, True),
                seg(3, 8, 0, False, False),
            ]
        )

        # Line 2 inherits the wrapped count, line 3 has its own uncovered region
        assert stats[2].count == 5 and stats[2].covered
        assert stats[3].mapped and not stats[3].covered

    def test_skipped_region_is_unmapped(self) -> None:
        stats = compute_line_stats(
            [seg(1, 1, 0, False, True), seg(2, 1, 3, True, True), seg(2, 8, 0, False, False)]
        )

        assert not stats[1].mapped
        assert not stats[1].covered
        assert stats[2].count == 3

    def test_line_after_region_end_is_unmapped(self) -> None:
        stats = compute_line_stats(
            [
                seg(1, 1, 4, True, True),
                seg(1, 9, 0, False, False),
                seg(3, 1, 2, True, True),
                seg(3, 5, 0, False, False),
            ]
        )

        assert stats[1].covered
        assert not stats[2].mapped
        assert stats[3].covered

    def test_unsorted_segments(self) -> None:
        stats = compute_line_stats([seg(2, 9, 0, False, False), seg(2, 1, 1, True, True)])

        assert list(stats) == [2]
        assert stats[2].covered

    def test_no_segments(self) -> None:
        assert compute_line_stats([]) == {}


class TestGroupInstantiations:
    def test_groups_by_definition_site(self) -> None:
        groups = group_instantiations(
            [
                function("_RINvf_u32", 0, code(10, 1, 12, 2, 0)),
                function("_RINvf_u64", 3, code(10, 1, 12, 2, 3)),
                function("g", 0, code(20, 1, 21, 2, 0)),
            ]
        )

        assert [(g.line, g.symbols) for g in groups] == [
            (10, ["_RINvf_u32", "_RINvf_u64"]),
            (20, ["g"]),
        ]
        assert groups[0].covered
        assert groups[0].count == 3
        assert not groups[1].covered

    def test_functions_without_code_regions_are_ignored(self) -> None:
        skipped = Region(1, 1, 2, 1, 0, 0, 0, RegionKind.SKIPPED)

        assert group_instantiations([function("f", 0, skipped)]) == []

    def test_count_saturates(self) -> None:
        (group,) = group_instantiations(
            [
                function("a", COUNTER_MAX, code(1, 1, 1, 5, 1)),
                function("b", 9, code(1, 1, 1, 5, 1)),
            ]
        )

        assert group.count == COUNTER_MAX


class TestComputeFileStats:
    def _export(self) -> CoverageExport:
        return CoverageExport(
            files=(
                ExportFile(UTIL, (seg(1, 1, 0, True, True), seg(1, 9, 0, False, False))),
                ExportFile(
                    LIB,
                    (
                        seg(10, 1, 3, True, True),
                        seg(10, 20, 0, False, False),
                        seg(11, 5, 0, True, True),
                        seg(11, 9, 0, False, False),
                        seg(12, 1, 3, True, True),
                        seg(12, 2, 0, False, False),
                    ),
                ),
            ),
            functions=(
                function("_RINvf_u32", 0, code(10, 1, 12, 2, 0), code(11, 5, 11, 9, 0)),
                function("_RINvf_u64", 3, code(10, 1, 12, 2, 3), code(11, 5, 11, 9, 0)),
                function("u", 0, code(1, 1, 1, 9, 0), filenames=(UTIL,)),
                function("ext", 1, code(1, 1, 1, 9, 1), filenames=("/elsewhere.rs",)),
            ),
        )

    def test_files_sorted_by_path(self) -> None:
        assert list(compute_file_stats(self._export())) == [LIB, UTIL]

    def test_region_counts_sum_over_instantiations(self) -> None:
        lib = compute_file_stats(self._export())[LIB]

        assert [(r.span, r.count, r.instantiations) for r in lib.regions] == [
            ((10, 1, 12, 2), 3, 2),
            ((11, 5, 11, 9), 0, 2),
        ]
        assert lib.region_count == CoverageCount(1, 2)

    def test_generic_function_counted_once(self) -> None:
        lib = compute_file_stats(self._export())[LIB]

        assert lib.function_count == CoverageCount(1, 1)
        assert lib.functions[0].symbols == ["_RINvf_u32", "_RINvf_u64"]

    def test_line_counts(self) -> None:
        stats = compute_file_stats(self._export())

        assert stats[LIB].line_count == CoverageCount(2, 3)
        assert stats[LIB].is_covered
        assert stats[UTIL].line_count == CoverageCount(0, 1)
        assert not stats[UTIL].is_covered

    def test_functions_outside_exported_files_ignored(self) -> None:
        stats = compute_file_stats(self._export())

        assert "/elsewhere.rs" not in stats
        assert sum(len(s.functions) for s in stats.values()) == 2

    def test_totals(self) -> None:
        lines, regions, functions = total_counts(compute_file_stats(self._export()).values())

        assert lines == CoverageCount(2, 4)
        assert regions == CoverageCount(1, 3)
        assert functions == CoverageCount(1, 2)

    @pytest.mark.parametrize("path", [LIB, UTIL])
    def test_empty_export_file(self, path: str) -> None:
        stats = compute_file_stats(CoverageExport(files=(ExportFile(path, ()),)))

        assert stats[path].line_count == CoverageCount(0, 0)
        assert stats[path].line_count.percent is None
