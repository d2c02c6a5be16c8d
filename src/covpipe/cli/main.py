"""covpipe CLI - covpipe command."""

import click

from covpipe import __version__
from covpipe.cli.discover import discover_command
from covpipe.cli.merge import merge_command
from covpipe.cli.run import run_command
from covpipe.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="covpipe")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """covpipe - instrumented test coverage: build, merge, report."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(run_command, name="run")
cli.add_command(discover_command, name="discover")
cli.add_command(merge_command, name="merge")


if __name__ == "__main__":
    cli()
