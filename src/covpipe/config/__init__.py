"""Config module exports."""

from covpipe.config.loader import find_config_file, load_config
from covpipe.config.models import (
    CoverageConfig,
    CovPipeConfig,
    LoggingConfig,
    LogOutputConfig,
    ReportConfig,
    ToolchainConfig,
)

__all__ = [
    "find_config_file",
    "load_config",
    "CovPipeConfig",
    "CoverageConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "ReportConfig",
    "ToolchainConfig",
]
