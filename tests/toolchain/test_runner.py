"""Tests for toolchain/runner.py module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from covpipe.toolchain.runner import (
    SubprocessRunner,
    ToolNotFoundError,
    ToolResult,
    ToolTimeoutError,
    resolve_executable,
)


class TestToolResult:
    def test_ok_only_for_zero_status(self) -> None:
        assert ToolResult(("x",), 0, "", "").ok
        assert not ToolResult(("x",), 1, "", "").ok

    def test_stderr_tail_keeps_last_lines(self) -> None:
        stderr = "\n".join(f"line {i}" for i in range(30))
        result = ToolResult(("x",), 1, "", stderr)

        tail = result.stderr_tail(max_lines=3)

        assert tail == "line 27\nline 28\nline 29"


class TestResolveExecutable:
    def test_unknown_command(self) -> None:
        assert resolve_executable("covpipe-no-such-tool-xyz") is None

    def test_absolute_path(self) -> None:
        assert resolve_executable(sys.executable) == sys.executable

    def test_missing_path(self, tmp_path: Path) -> None:
        assert resolve_executable(str(tmp_path / "missing")) is None


class TestSubprocessRunner:
    def test_captures_stdout_and_status(self) -> None:
        runner = SubprocessRunner()

        result = runner.run([sys.executable, "-c", "import sys; print('hi'); sys.exit(3)"])

        assert result.returncode == 3
        assert result.stdout.strip() == "hi"

    def test_passes_stdin(self) -> None:
        runner = SubprocessRunner()

        result = runner.run(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            input="mangled\n",
        )

        assert result.stdout.strip() == "MANGLED"

    def test_env_merged_over_inherited(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COVPIPE_TEST_INHERITED", "kept")
        runner = SubprocessRunner()

        result = runner.run(
            [
                sys.executable,
                "-c",
                "import os; e = os.environ; "
                "print(e['COVPIPE_TEST_INHERITED'], e['LLVM_PROFILE_FILE'])",
            ],
            env={"LLVM_PROFILE_FILE": "/tmp/run-%m.profraw"},
        )

        assert result.stdout.split() == ["kept", "/tmp/run-%m.profraw"]

    def test_missing_executable_raises(self) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            SubprocessRunner().run(["covpipe-no-such-tool-xyz"])

        assert exc_info.value.executable == "covpipe-no-such-tool-xyz"

    def test_timeout_raises(self) -> None:
        runner = SubprocessRunner(timeout=0.2)

        with pytest.raises(ToolTimeoutError):
            runner.run([sys.executable, "-c", "import time; time.sleep(5)"])

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValueError):
            SubprocessRunner().run([])
