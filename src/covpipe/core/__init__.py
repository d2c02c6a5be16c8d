"""Core module exports."""

from covpipe.core.errors import (
    BuildFailure,
    ConfigError,
    CovPipeError,
    DiscoveryMismatch,
    ErrorCode,
    ExecutionFailure,
    InternalError,
    MergeFailure,
    PersistFailure,
    RenderFailure,
)
from covpipe.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from covpipe.core.progress import spinner, status, task

__all__ = [
    # Errors
    "BuildFailure",
    "ConfigError",
    "CovPipeError",
    "DiscoveryMismatch",
    "ErrorCode",
    "ExecutionFailure",
    "InternalError",
    "MergeFailure",
    "PersistFailure",
    "RenderFailure",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "spinner",
    "status",
    "task",
]
