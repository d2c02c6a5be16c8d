"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config() (CLI flags)
2. Environment variables (COVPIPE__SECTION__KEY)
3. Workspace YAML (covpipe.yaml or .covpipe.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    COVPIPE__<SECTION>__<KEY>=<VALUE>

Examples:
    COVPIPE__LOGGING__LEVEL=DEBUG
    COVPIPE__COVERAGE__PATH_EXCLUSION_REGEX='/\\.cargo/(registry|git)'
    COVPIPE__TOOLCHAIN__DEMANGLER=rustfilt
"""

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from covpipe.config.constants import (
    PROCESS_UNIQUE_PLACEHOLDERS,
    SNAPSHOT_PLACEHOLDER_RE,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        COVPIPE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. Stage progress is always shown; logs are for diagnosis.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class CoverageConfig(BaseModel):
    """The coverage run contract shared by compile, discovery and merge.

    Env vars:
        COVPIPE__COVERAGE__INSTRUMENTATION_ENABLED
        COVPIPE__COVERAGE__SNAPSHOT_NAME_PATTERN
        COVPIPE__COVERAGE__PATH_EXCLUSION_REGEX
        COVPIPE__COVERAGE__OUTPUT_DESTINATION
    """

    instrumentation_enabled: bool = Field(
        default=True,
        description="Compile with coverage instrumentation. A run with this off "
        "fails at the compile stage rather than merging uninstrumented objects.",
    )
    snapshot_name_pattern: str = Field(
        default="covpipe-%m.profraw",
        description="LLVM_PROFILE_FILE pattern. Must contain %p or %m so every "
        "process writes its own snapshot.",
    )
    path_exclusion_regex: str = Field(
        default=r"/\.cargo/registry",
        description="Source paths matching this regex are removed from both reports.",
    )
    output_destination: str = Field(
        default="coverage",
        description="Directory the annotated report is published into.",
    )
    snapshot_dir: str = Field(
        default=".",
        description="Directory the snapshot pattern is resolved against.",
    )

    @field_validator("snapshot_name_pattern")
    @classmethod
    def validate_snapshot_name_pattern(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError(f"Snapshot pattern must be a file name, not a path: {v}")
        matches = list(SNAPSHOT_PLACEHOLDER_RE.finditer(v))
        placeholders = {m.group(1)[-1] for m in matches}
        if not placeholders & PROCESS_UNIQUE_PLACEHOLDERS:
            raise ValueError(f"Snapshot pattern needs a per-process placeholder (%p or %m): {v}")
        if not v[matches[-1].end() :]:
            raise ValueError(f"Snapshot pattern must end in a literal suffix, e.g. .profraw: {v}")
        return v

    @field_validator("path_exclusion_regex")
    @classmethod
    def validate_path_exclusion_regex(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex {v!r}: {e}") from e
        return v


class ToolchainConfig(BaseModel):
    """External tools the pipeline drives.

    Env vars:
        COVPIPE__TOOLCHAIN__LLVM_PROFDATA: llvm-profdata executable
        COVPIPE__TOOLCHAIN__LLVM_COV: llvm-cov executable
        COVPIPE__TOOLCHAIN__DEMANGLER: Symbol demangler (empty disables)
        COVPIPE__TOOLCHAIN__TIMEOUT_SEC: Per-tool timeout
    """

    build_command: list[str] = Field(
        default_factory=lambda: ["cargo", "test", "--tests", "--no-run", "--message-format=json"],
        description="Command emitting the build-event stream (JSON lines) on stdout.",
    )
    instrument_flags: str = Field(
        default="-C instrument-coverage",
        description="Compiler flags appended to RUSTFLAGS when instrumentation is enabled.",
    )
    llvm_profdata: str = Field(default="llvm-profdata")
    llvm_cov: str = Field(default="llvm-cov")
    demangler: str | None = Field(
        default="rustfilt",
        description="Reads mangled symbols on stdin, writes demangled names on stdout.",
    )
    run_tests: bool = Field(
        default=False,
        description="Run every discovered test binary before merging. Off when an "
        "external test runner already produced the snapshots.",
    )
    verify_instrumentation: bool = Field(
        default=True,
        description="Reject discovered objects that carry no coverage mapping section.",
    )
    timeout_sec: float | None = Field(
        default=None,
        description="Timeout for each external tool call. None waits indefinitely.",
    )

    @field_validator("build_command")
    @classmethod
    def validate_build_command(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Build command must not be empty")
        return v

    @field_validator("demangler")
    @classmethod
    def validate_demangler(cls, v: str | None) -> str | None:
        return v or None


class ReportConfig(BaseModel):
    """Report rendering configuration.

    Env vars:
        COVPIPE__REPORT__TITLE: Annotated report title
        COVPIPE__REPORT__USE_COLOR: Colorize the summary table
    """

    annotated_filename: str = Field(
        default="covpipe-coverage.html",
        description="Fixed file name the annotated report is rendered to before publishing.",
    )
    published_name: str = Field(default="index.html")
    title: str = Field(default="Coverage Report")
    use_color: bool = Field(default=True)


class CovPipeConfig(BaseModel):
    """Root configuration for covpipe."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
