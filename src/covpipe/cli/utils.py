"""CLI utilities."""

from pathlib import Path
from typing import Any, NoReturn

import click

from covpipe.config.loader import load_config
from covpipe.config.models import CovPipeConfig
from covpipe.core.errors import ConfigError, CovPipeError
from covpipe.core.logging import configure_logging
from covpipe.core.progress import status

EXIT_CONFIG_ERROR = 2


def load_cli_config(
    workspace: Path,
    config_file: Path | None,
    *,
    verbose: bool = False,
    **overrides: Any,
) -> CovPipeConfig:
    """Load configuration and apply its logging settings.

    Exits with status 2 on configuration errors.
    """
    try:
        config = load_config(workspace, config_file=config_file, **overrides)
    except ConfigError as e:
        status(str(e), style="error")
        raise SystemExit(EXIT_CONFIG_ERROR) from e

    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)
    return config


def fail(error: CovPipeError, exit_code: int, *, stage: str | None = None) -> NoReturn:
    """Report a failure on stderr and exit."""
    prefix = f"{stage} failed: " if stage else ""
    status(f"{prefix}{error}", style="error")
    raise SystemExit(exit_code)


def workspace_option(fn: Any) -> Any:
    return click.option(
        "--workspace",
        "-C",
        default=".",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Directory to run in (default: current directory)",
    )(fn)


def config_option(fn: Any) -> Any:
    return click.option(
        "--config",
        "config_file",
        default=None,
        type=click.Path(dir_okay=False, path_type=Path),
        help="Config file (default: covpipe.yaml in the workspace)",
    )(fn)
