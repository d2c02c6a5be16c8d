"""Tests for the LLVM text profile format."""

from __future__ import annotations

import pytest

from covpipe.core.errors import ErrorCode, MergeFailure
from covpipe.coverage.profile import FunctionRecord
from covpipe.coverage.proftext import format_proftext, parse_proftext

SAMPLE = """\
# IR level Instrumentation Flag
:ir
_RNvCs1_6stroka4main
# Func Hash:
1234
# Num Counters:
2
# Counter Values:
10
0

_RNvCs1_6stroka6helper
# Func Hash:
99
# Num Counters:
1
# Counter Values:
3
# Num Bitmap Bytes:
$2
# Bitmap Byte Values:
0x3
0x0
"""


class TestParseProftext:
    def test_parses_records_and_flags(self) -> None:
        snapshot = parse_proftext(SAMPLE, source="covpipe-1.profraw")

        assert snapshot.source == "covpipe-1.profraw"
        assert snapshot.flags == frozenset({"ir"})
        assert snapshot.records == (
            FunctionRecord("_RNvCs1_6stroka4main", 1234, (10, 0)),
            FunctionRecord("_RNvCs1_6stroka6helper", 99, (3,), bitmap=(3, 0)),
        )

    def test_front_end_flag_is_default(self) -> None:
        snapshot = parse_proftext(":fe\nmain\n1\n1\n5\n")

        assert snapshot.flags == frozenset()
        assert snapshot.records[0].counters == (5,)

    def test_zero_value_kinds_accepted(self) -> None:
        snapshot = parse_proftext("main\n1\n1\n5\n0\n")

        assert snapshot.records[0].counters == (5,)

    def test_empty_text_has_no_records(self) -> None:
        assert parse_proftext("# nothing here\n").records == ()

    @pytest.mark.parametrize(
        ("text", "reason"),
        [
            ("main\n1\n2\n5\n", "unexpected end of file"),
            ("main\nabc\n1\n5\n", "expected function hash"),
            ("main\n1\n1\n5x\n", "expected counter value"),
            ("main\n1\n0\n", "no counters"),
            ("main\n1\n1\n5\n2\n", "value profile"),
            (":temporal_prof_traces\nmain\n1\n1\n5\n", "unsupported profile section"),
            ("main\n1\n1\n5\n$x\n", "bitmap byte count"),
        ],
    )
    def test_malformed_text_is_corrupt_snapshot(self, text: str, reason: str) -> None:
        with pytest.raises(MergeFailure) as exc_info:
            parse_proftext(text, source="bad.profraw")

        assert exc_info.value.code == ErrorCode.MERGE_CORRUPT_SNAPSHOT
        assert reason in exc_info.value.message
        assert exc_info.value.details["path"] == "bad.profraw"

    def test_error_carries_line_number(self) -> None:
        with pytest.raises(MergeFailure) as exc_info:
            parse_proftext("# header\nmain\n1\n1\nnope\n")

        assert exc_info.value.details["line"] == 5

    def test_counter_above_64_bits_rejected(self) -> None:
        with pytest.raises(MergeFailure, match="out of range"):
            parse_proftext(f"main\n1\n1\n{2**64}\n")


class TestFormatProftext:
    def test_output_parses_back(self) -> None:
        records = (
            FunctionRecord("a", 1, (1, 2, 3)),
            FunctionRecord("b", 2, (0,), bitmap=(0xFF,)),
        )

        text = format_proftext(records, frozenset({"ir"}))
        snapshot = parse_proftext(text)

        assert snapshot.records == records
        assert snapshot.flags == frozenset({"ir"})

    def test_no_header_without_flags(self) -> None:
        text = format_proftext((FunctionRecord("a", 1, (1,)),), frozenset())

        assert not text.startswith("#")
        assert text.splitlines()[0] == "a"
