"""External tool execution.

Every external program the pipeline drives (the build command, test binaries,
llvm-profdata, llvm-cov, the demangler) goes through a ``ToolRunner``. The
subprocess implementation resolves executables up front so a missing tool is
reported as such instead of surfacing as a generic OSError, and merges extra
environment variables over the inherited environment.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


class ToolError(Exception):
    """Base class for failures to run a tool at all."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"{executable}: {reason}")
        self.executable = executable
        self.reason = reason


class ToolNotFoundError(ToolError):
    """The executable is not on PATH or does not exist."""

    def __init__(self, executable: str) -> None:
        super().__init__(executable, "executable not found")


class ToolTimeoutError(ToolError):
    """The tool did not finish within the configured timeout."""

    def __init__(self, executable: str, timeout: float) -> None:
        super().__init__(executable, f"timed out after {timeout}s")
        self.timeout = timeout


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Captured outcome of one tool invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, max_lines: int = 20) -> str:
        """Last lines of stderr, for error messages."""
        lines = self.stderr.strip().splitlines()
        return "\n".join(lines[-max_lines:])


class ToolRunner(Protocol):
    """Protocol for running external tools.

    Implementations must raise ToolNotFoundError when the executable cannot
    be resolved and ToolTimeoutError on timeout. A non-zero exit status is
    not an exception; callers decide what it means for their stage.
    """

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> ToolResult: ...


def resolve_executable(executable: str) -> str | None:
    """Resolve a command name or path to an executable path."""
    if os.sep in executable or (os.altsep and os.altsep in executable):
        path = Path(executable)
        return str(path) if path.is_file() and os.access(path, os.X_OK) else None
    return shutil.which(executable)


class SubprocessRunner:
    """ToolRunner backed by ``subprocess.run``."""

    def __init__(self, *, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> ToolResult:
        if not args:
            raise ValueError("Cannot run an empty command")

        executable = resolve_executable(args[0])
        if executable is None:
            raise ToolNotFoundError(args[0])

        full_env = {**os.environ, **env} if env else None
        argv = [executable, *args[1:]]

        logger.debug("tool_start", args=list(args), cwd=str(cwd) if cwd else None)
        start = time.perf_counter()
        try:
            completed = subprocess.run(
                argv,
                cwd=cwd,
                env=full_env,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolTimeoutError(args[0], self.timeout or 0.0) from e
        except OSError as e:
            raise ToolError(args[0], str(e)) from e

        elapsed = time.perf_counter() - start
        logger.debug(
            "tool_done",
            tool=args[0],
            returncode=completed.returncode,
            elapsed_s=round(elapsed, 3),
        )
        return ToolResult(
            args=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
