"""covpipe command-line interface."""

from covpipe.cli.main import cli

__all__ = ["cli"]
