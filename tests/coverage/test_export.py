"""Tests for llvm-cov export parsing and invocation."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest
from conftest import FakeRunner, MappedFunction, export_payload

from covpipe.build.models import ObjectList
from covpipe.core.errors import ErrorCode, RenderFailure
from covpipe.coverage.export import CoverageExport, RegionKind, parse_export, run_export
from covpipe.coverage.filters import PathFilter

LIB = "/ws/src/lib.rs"
DEP = "/home/u/.cargo/registry/src/dep-1.0/src/lib.rs"


class TestParseExport:
    def test_parses_files_and_functions(self) -> None:
        payload = export_payload([MappedFunction("f", 1, LIB, 3, 2)], {("f", 1): (4, 0)})

        export = parse_export(json.dumps(payload))

        assert export.version == "2.0.1"
        assert [f.filename for f in export.files] == [LIB]
        (fn,) = export.functions
        assert fn.name == "f"
        assert fn.count == 4
        assert fn.filename == LIB
        assert [r.count for r in fn.regions] == [4, 0]
        assert fn.regions[0].kind == RegionKind.CODE
        assert fn.regions[0].span == (3, 1, 3, 10)

    def test_five_element_segments_have_no_gap_flag(self) -> None:
        payload = {
            "data": [{"files": [{"filename": LIB, "segments": [[1, 1, 2, True, True]]}]}],
        }

        export = parse_export(payload)

        assert export.files[0].segments[0].is_gap_region is False

    def test_code_regions_skip_other_kinds(self) -> None:
        payload = {
            "data": [
                {
                    "functions": [
                        {
                            "name": "f",
                            "count": 1,
                            "filenames": [LIB, "/ws/src/macros.rs"],
                            "regions": [
                                [1, 1, 5, 2, 1, 0, 0, 0],
                                [2, 5, 2, 9, 1, 0, 1, 1],
                                [3, 1, 3, 8, 0, 0, 0, 2],
                                [1, 1, 1, 4, 1, 1, 0, 0],
                            ],
                        }
                    ]
                }
            ]
        }

        (fn,) = parse_export(payload).functions

        assert [(name, r.span) for name, r in fn.code_regions()] == [
            (LIB, (1, 1, 5, 2)),
            ("/ws/src/macros.rs", (1, 1, 1, 4)),
        ]

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            "[]",
            json.dumps({"type": "something.else", "data": []}),
            json.dumps({"type": "llvm.coverage.json.export"}),
            json.dumps({"data": [{"files": [{"segments": []}]}]}),
            json.dumps({"data": [{"files": [{"filename": "x", "segments": [[1, 2]]}]}]}),
            json.dumps(
                {"data": [{"functions": [{"name": "f", "regions": [[1, 1, 1, 1, 0, 0, 0, 9]]}]}]}
            ),
            json.dumps({"data": [{"functions": [{"name": "f", "count": "many"}]}]}),
        ],
    )
    def test_invalid_payloads(self, payload: str) -> None:
        with pytest.raises(RenderFailure) as exc_info:
            parse_export(payload)

        assert exc_info.value.code == ErrorCode.RENDER_INVALID_EXPORT


class TestRunExport:
    def test_arguments_and_fingerprint(self, tmp_path: Path, fake_runner: FakeRunner) -> None:
        fake_runner.reply("llvm-cov", json.dumps(export_payload([], {})))
        objects = ObjectList(("/t/a", "/t/b"))
        index = tmp_path / "covpipe.profdata"

        export = run_export(
            fake_runner, index, objects, ignore_filename_regex=r"/\.cargo/registry"
        )

        assert export.object_fingerprint == objects.fingerprint
        assert fake_runner.called("llvm-cov")[0] == [
            "llvm-cov",
            "export",
            "-format=text",
            f"-instr-profile={index}",
            r"-ignore-filename-regex=/\.cargo/registry",
            "-object",
            "/t/a",
            "-object",
            "/t/b",
        ]

    def test_no_ignore_regex(self, tmp_path: Path, fake_runner: FakeRunner) -> None:
        fake_runner.reply("llvm-cov", json.dumps(export_payload([], {})))

        run_export(fake_runner, tmp_path / "p", ObjectList(("/t/a",)))

        assert not any(a.startswith("-ignore") for a in fake_runner.called("llvm-cov")[0])

    def test_missing_tool(self, tmp_path: Path, fake_runner: FakeRunner) -> None:
        with pytest.raises(RenderFailure) as exc_info:
            run_export(fake_runner, tmp_path / "p", ObjectList(("/t/a",)))

        assert exc_info.value.code == ErrorCode.RENDER_TOOL_MISSING

    def test_tool_failure(self, tmp_path: Path, fake_runner: FakeRunner) -> None:
        fake_runner.reply("llvm-cov", returncode=1, stderr="error: no profile data")

        with pytest.raises(RenderFailure, match="no profile data"):
            run_export(fake_runner, tmp_path / "p", ObjectList(("/t/a",)))


class TestPathFilter:
    def _export(self) -> CoverageExport:
        payload = export_payload(
            [MappedFunction("f", 1, LIB, 1, 1), MappedFunction("d", 2, DEP, 1, 1)],
            {("f", 1): (1,), ("d", 2): (1,)},
        )
        return parse_export(payload)

    def test_excludes_matching_files_and_functions(self) -> None:
        filtered = PathFilter(r"/\.cargo/registry").apply(self._export())

        assert [f.filename for f in filtered.files] == [LIB]
        assert [f.name for f in filtered.functions] == ["f"]

    def test_empty_pattern_excludes_nothing(self) -> None:
        export = self._export()

        assert PathFilter("").apply(export) is export
        assert not PathFilter().excludes(DEP)

    def test_search_semantics(self) -> None:
        assert PathFilter("registry").excludes(DEP)
        assert not PathFilter("^registry").excludes(DEP)

    def test_keeps_fingerprint(self) -> None:
        export = replace(self._export(), object_fingerprint="fp")

        assert PathFilter("registry").apply(export).object_fingerprint == "fp"
