"""covpipe error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Build / discovery
- 4xxx: Merge
- 5xxx: Render
- 6xxx: Persist
- 7xxx: Execute
- 9xxx: Internal

Every pipeline error is fatal. ``retryable`` is carried for symmetry with
structured output but is never set.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Build (3xxx)
    BUILD_FAILED = 3001
    BUILD_TOOL_MISSING = 3002
    BUILD_NOT_INSTRUMENTED = 3003
    DISCOVERY_EMPTY = 3101
    DISCOVERY_DIVERGED = 3102

    # Merge (4xxx)
    MERGE_NO_SNAPSHOTS = 4001
    MERGE_CORRUPT_SNAPSHOT = 4002
    MERGE_COUNTER_MISMATCH = 4003
    MERGE_TOOL_FAILED = 4004
    MERGE_WRITE_FAILED = 4005
    MERGE_STALE_SNAPSHOT = 4006

    # Render (5xxx)
    RENDER_TOOL_MISSING = 5001
    RENDER_TOOL_FAILED = 5002
    RENDER_INVALID_EXPORT = 5003
    RENDER_TOTALS_DIVERGED = 5004
    RENDER_WRITE_FAILED = 5005

    # Persist (6xxx)
    PERSIST_FAILED = 6001

    # Execute (7xxx)
    EXECUTE_TEST_FAILED = 7001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class CovPipeError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'MERGE_NO_SNAPSHOTS')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CovPipeError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class BuildFailure(CovPipeError):
    """Instrumented compilation failed or produced unusable objects."""

    @classmethod
    def compile_failed(cls, reason: str, **details: Any) -> "BuildFailure":
        return cls(
            code=ErrorCode.BUILD_FAILED,
            message=f"Instrumented build failed: {reason}",
            details=details,
        )

    @classmethod
    def tool_missing(cls, executable: str) -> "BuildFailure":
        return cls(
            code=ErrorCode.BUILD_TOOL_MISSING,
            message=f"Build tool not found: {executable}",
            details={"executable": executable},
        )

    @classmethod
    def not_instrumented(cls, paths: list[str]) -> "BuildFailure":
        if not paths:
            message = "Coverage instrumentation is disabled"
        else:
            message = f"Objects lack coverage instrumentation: {', '.join(paths)}"
        return cls(
            code=ErrorCode.BUILD_NOT_INSTRUMENTED,
            message=message,
            details={"paths": paths},
        )


class DiscoveryMismatch(CovPipeError):
    """The discovered object list is empty or used inconsistently."""

    @classmethod
    def empty(cls, artifacts_seen: int) -> "DiscoveryMismatch":
        return cls(
            code=ErrorCode.DISCOVERY_EMPTY,
            message="No test binaries found in build output",
            details={"artifacts_seen": artifacts_seen},
        )

    @classmethod
    def diverged(cls, expected: str, actual: str) -> "DiscoveryMismatch":
        return cls(
            code=ErrorCode.DISCOVERY_DIVERGED,
            message="Merged profile was built for a different object list",
            details={"expected": expected, "actual": actual},
        )


class MergeFailure(CovPipeError):
    """Raw snapshots could not be merged into an index."""

    @classmethod
    def no_snapshots(cls, directory: str, pattern: str) -> "MergeFailure":
        return cls(
            code=ErrorCode.MERGE_NO_SNAPSHOTS,
            message=f"No snapshots matching {pattern!r} in {directory}",
            details={"directory": directory, "pattern": pattern},
        )

    @classmethod
    def corrupt_snapshot(cls, path: str, reason: str, line: int | None = None) -> "MergeFailure":
        where = f"{path}:{line}" if line is not None else path
        return cls(
            code=ErrorCode.MERGE_CORRUPT_SNAPSHOT,
            message=f"Corrupt snapshot {where}: {reason}",
            details={"path": path, "reason": reason, "line": line},
        )

    @classmethod
    def counter_mismatch(cls, function: str, expected: int, actual: int) -> "MergeFailure":
        return cls(
            code=ErrorCode.MERGE_COUNTER_MISMATCH,
            message=(
                f"Counter layout mismatch for {function}: "
                f"{expected} counters vs {actual}"
            ),
            details={"function": function, "expected": expected, "actual": actual},
        )

    @classmethod
    def tool_failed(cls, tool: str, reason: str) -> "MergeFailure":
        return cls(
            code=ErrorCode.MERGE_TOOL_FAILED,
            message=f"{tool} failed: {reason}",
            details={"tool": tool, "reason": reason},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "MergeFailure":
        return cls(
            code=ErrorCode.MERGE_WRITE_FAILED,
            message=f"Failed to write merged index {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def stale_snapshot(cls, path: str, reason: str) -> "MergeFailure":
        return cls(
            code=ErrorCode.MERGE_STALE_SNAPSHOT,
            message=f"Cannot remove snapshot {path} left by a previous run: {reason}",
            details={"path": path, "reason": reason},
        )


class RenderFailure(CovPipeError):
    """Summary or annotated rendering failed."""

    @classmethod
    def tool_missing(cls, executable: str) -> "RenderFailure":
        return cls(
            code=ErrorCode.RENDER_TOOL_MISSING,
            message=f"Render tool not found: {executable}",
            details={"executable": executable},
        )

    @classmethod
    def tool_failed(cls, tool: str, reason: str) -> "RenderFailure":
        return cls(
            code=ErrorCode.RENDER_TOOL_FAILED,
            message=f"{tool} failed: {reason}",
            details={"tool": tool, "reason": reason},
        )

    @classmethod
    def invalid_export(cls, reason: str) -> "RenderFailure":
        return cls(
            code=ErrorCode.RENDER_INVALID_EXPORT,
            message=f"Invalid coverage export: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def totals_diverged(cls, metric: str, summary: Any, annotated: Any) -> "RenderFailure":
        return cls(
            code=ErrorCode.RENDER_TOTALS_DIVERGED,
            message=(
                f"Summary and annotated {metric} totals disagree: "
                f"{summary} vs {annotated}"
            ),
            details={"metric": metric, "summary": str(summary), "annotated": str(annotated)},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "RenderFailure":
        return cls(
            code=ErrorCode.RENDER_WRITE_FAILED,
            message=f"Failed to write report {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class PersistFailure(CovPipeError):
    """The annotated report could not be published."""

    @classmethod
    def relocate_failed(cls, source: str, destination: str, reason: str) -> "PersistFailure":
        return cls(
            code=ErrorCode.PERSIST_FAILED,
            message=f"Failed to publish {source} to {destination}: {reason}",
            details={"source": source, "destination": destination, "reason": reason},
        )


class ExecutionFailure(CovPipeError):
    """An instrumented test binary failed while producing snapshots."""

    @classmethod
    def test_failed(cls, binary: str, exit_code: int) -> "ExecutionFailure":
        return cls(
            code=ErrorCode.EXECUTE_TEST_FAILED,
            message=f"Test binary {binary} exited with status {exit_code}",
            details={"binary": binary, "exit_code": exit_code},
        )


class InternalError(CovPipeError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
