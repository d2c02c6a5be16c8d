"""External tool execution."""

from covpipe.toolchain.runner import (
    SubprocessRunner,
    ToolError,
    ToolNotFoundError,
    ToolResult,
    ToolRunner,
    ToolTimeoutError,
    resolve_executable,
)

__all__ = [
    "SubprocessRunner",
    "ToolError",
    "ToolNotFoundError",
    "ToolResult",
    "ToolRunner",
    "ToolTimeoutError",
    "resolve_executable",
]
