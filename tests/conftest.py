"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides a fake toolchain standing in for cargo and the LLVM tools.
"""

from __future__ import annotations

import json
import shutil
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local covpipe package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of covpipe modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("covpipe"):
        del sys.modules[module_name]

from covpipe.coverage.proftext import parse_proftext  # noqa: E402
from covpipe.toolchain.runner import ToolNotFoundError, ToolResult  # noqa: E402

Handler = Callable[..., ToolResult]


def tool_result(
    args: Sequence[str],
    stdout: str = "",
    *,
    returncode: int = 0,
    stderr: str = "",
) -> ToolResult:
    return ToolResult(args=tuple(args), returncode=returncode, stdout=stdout, stderr=stderr)


class FakeRunner:
    """ToolRunner that dispatches on the executable name."""

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {}
        self.calls: list[dict[str, Any]] = []

    def on(self, executable: str, handler: Handler) -> None:
        self.handlers[executable] = handler

    def reply(
        self, executable: str, stdout: str = "", *, returncode: int = 0, stderr: str = ""
    ) -> None:
        """Answer every call to ``executable`` with a fixed result."""
        self.on(
            executable,
            lambda args, **_: tool_result(args, stdout, returncode=returncode, stderr=stderr),
        )

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> ToolResult:
        self.calls.append({"args": list(args), "cwd": cwd, "env": dict(env or {}), "input": input})
        handler = self.handlers.get(args[0])
        if handler is None:
            raise ToolNotFoundError(args[0])
        return handler(list(args), cwd=cwd, env=env, input=input)

    def called(self, executable: str) -> list[list[str]]:
        return [c["args"] for c in self.calls if c["args"][0] == executable]


@dataclass(frozen=True)
class MappedFunction:
    """Coverage mapping of one instrumented function: one region per line."""

    name: str
    hash: int
    filename: str
    first_line: int
    regions: int


def export_payload(
    functions: Sequence[MappedFunction],
    counters: Mapping[tuple[str, int], Sequence[int]],
) -> dict[str, Any]:
    """Build llvm-cov export JSON for ``functions`` joined with ``counters``."""
    exported: list[dict[str, Any]] = []
    segments: dict[str, list[list[Any]]] = {}
    for fn in functions:
        values = list(counters.get((fn.name, fn.hash), [0] * fn.regions))
        regions = [
            [fn.first_line + i, 1, fn.first_line + i, 10, values[i], 0, 0, 0]
            for i in range(fn.regions)
        ]
        exported.append(
            {
                "name": fn.name,
                "count": values[0],
                "filenames": [fn.filename],
                "regions": regions,
                "branches": [],
            }
        )
        file_segments = segments.setdefault(fn.filename, [])
        for i in range(fn.regions):
            line = fn.first_line + i
            file_segments.append([line, 1, values[i], True, True, False])
            file_segments.append([line, 10, 0, False, False, False])

    files = [
        {"filename": name, "segments": sorted(segs, key=lambda s: (s[0], s[1]))}
        for name, segs in sorted(segments.items())
    ]
    return {
        "type": "llvm.coverage.json.export",
        "version": "2.0.1",
        "data": [{"files": files, "functions": exported}],
    }


class FakeToolchain(FakeRunner):
    """llvm-profdata, llvm-cov and rustfilt over text profiles.

    ``llvm-profdata merge -sparse`` copies the text profile, so the indexed
    profile llvm-cov reads back is the merged text index.
    """

    def __init__(self, functions: Sequence[MappedFunction] = ()) -> None:
        super().__init__()
        self.functions = list(functions)
        self.on("llvm-profdata", self._profdata)
        self.on("llvm-cov", self._llvm_cov)
        self.on("rustfilt", self._rustfilt)

    def _profdata(self, args: list[str], **_: Any) -> ToolResult:
        if "-sparse" in args:
            source = Path(args[args.index("-sparse") + 1])
            output = Path(args[args.index("-o") + 1])
            shutil.copyfile(source, output)
            return tool_result(args)
        return tool_result(args, Path(args[-1]).read_text())

    def _llvm_cov(self, args: list[str], **_: Any) -> ToolResult:
        profile = next(a.split("=", 1)[1] for a in args if a.startswith("-instr-profile="))
        snapshot = parse_proftext(Path(profile).read_text(), source=profile)
        counters = {r.key: r.counters for r in snapshot.records}
        return tool_result(args, json.dumps(export_payload(self.functions, counters)))

    def _rustfilt(self, args: list[str], *, input: str | None = None, **_: Any) -> ToolResult:
        names = [f"demangled::{s}" for s in (input or "").splitlines()]
        return tool_result(args, "\n".join(names) + "\n")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()
