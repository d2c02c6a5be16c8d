"""Instrumented compilation.

The build command runs with the instrumentation flags and the snapshot
naming pattern in its environment, both taken from the same configuration
the merge stage reads, and its JSON message stream is parsed into events.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog

from covpipe.build.events import parse_event_stream
from covpipe.build.models import BuildEvent, CompilerMessage
from covpipe.config.constants import PROFILE_FILE_ENV, RUSTFLAGS_ENV
from covpipe.config.models import CoverageConfig, ToolchainConfig
from covpipe.core.errors import BuildFailure
from covpipe.toolchain.runner import ToolError, ToolNotFoundError, ToolRunner

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class BuildOutput:
    events: tuple[BuildEvent, ...]
    returncode: int = 0


def build_environment(
    coverage: CoverageConfig,
    toolchain: ToolchainConfig,
    profile_file: Path,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment overrides for the build and test processes.

    Raises:
        BuildFailure: If instrumentation is disabled.
    """
    if not coverage.instrumentation_enabled:
        raise BuildFailure.not_instrumented([])

    base = os.environ if base_env is None else base_env
    existing = base.get(RUSTFLAGS_ENV, "").strip()
    flags = " ".join(f for f in (existing, toolchain.instrument_flags) if f)
    return {
        RUSTFLAGS_ENV: flags,
        PROFILE_FILE_ENV: str(profile_file),
    }


def run_build(
    runner: ToolRunner,
    toolchain: ToolchainConfig,
    env: Mapping[str, str],
    *,
    cwd: Path | None = None,
) -> BuildOutput:
    """Run the build command and parse its event stream.

    Raises:
        BuildFailure: If the tool is missing, the stream reports an error, or
            the command exits non-zero.
    """
    executable = toolchain.build_command[0]
    try:
        result = runner.run(toolchain.build_command, cwd=cwd, env=env)
    except ToolNotFoundError as e:
        raise BuildFailure.tool_missing(executable) from e
    except ToolError as e:
        raise BuildFailure.compile_failed(e.reason, tool=executable) from e

    events = tuple(parse_event_stream(result.stdout.splitlines()))
    logger.debug("build_done", returncode=result.returncode, events=len(events))

    if not result.ok:
        errors = [e.rendered.strip() for e in events if isinstance(e, CompilerMessage) and e.is_error]
        raise BuildFailure.compile_failed(
            (errors[0] if errors else result.stderr_tail()) or f"exit status {result.returncode}",
            tool=executable,
            returncode=result.returncode,
        )
    return BuildOutput(events=events, returncode=result.returncode)


def read_event_file(path: Path) -> BuildOutput:
    """Load a recorded build-event stream (one JSON message per line).

    Raises:
        BuildFailure: If the file cannot be read.
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise BuildFailure.compile_failed(f"cannot read event stream {path}: {e}") from e
    return BuildOutput(events=tuple(parse_event_stream(text.splitlines())))
