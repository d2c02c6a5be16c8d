"""covpipe run command - the full coverage pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from covpipe.cli.utils import config_option, fail, load_cli_config, workspace_option
from covpipe.config.constants import EXIT_INTERNAL_ERROR
from covpipe.core.errors import InternalError
from covpipe.core.progress import status
from covpipe.pipeline import Pipeline, PipelineFailure


@click.command()
@workspace_option
@config_option
@click.option(
    "--events",
    "events_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read a recorded build-event stream instead of running the build",
)
@click.option("--output", "-o", default=None, help="Publish directory (coverage.output_destination)")
@click.option("--snapshot-dir", default=None, help="Directory snapshots are written to")
@click.option("--run-tests/--no-run-tests", default=None, help="Run test binaries before merging")
@click.option("--no-color", is_flag=True, help="Disable colors in the summary table")
@click.option(
    "--json-summary",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the summary as JSON",
)
@click.pass_context
def run_command(
    ctx: click.Context,
    workspace: Path,
    config_file: Path | None,
    events_file: Path | None,
    output: str | None,
    snapshot_dir: str | None,
    run_tests: bool | None,
    no_color: bool,
    json_summary: Path | None,
) -> None:
    """Build, merge and report coverage.

    Exit status is 0 only if every stage succeeds. Each stage has its own
    non-zero status: compile 3, discover 4, execute 5, merge 6, summary 7,
    annotated report 8, publish 9. Configuration errors exit with 2.
    """
    coverage: dict[str, Any] = {}
    if output is not None:
        coverage["output_destination"] = output
    if snapshot_dir is not None:
        coverage["snapshot_dir"] = snapshot_dir
    overrides: dict[str, Any] = {}
    if coverage:
        overrides["coverage"] = coverage
    if run_tests is not None:
        overrides["toolchain"] = {"run_tests": run_tests}
    if no_color:
        overrides["report"] = {"use_color": False}

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_cli_config(workspace, config_file, verbose=verbose, **overrides)

    pipeline = Pipeline(
        config,
        workspace.resolve(),
        events_file=events_file,
        summary_json=json_summary,
    )
    try:
        result = pipeline.run()
    except PipelineFailure as e:
        fail(e.error, e.exit_code, stage=e.stage.value)
    except Exception as e:  # noqa: BLE001
        fail(InternalError.unexpected(str(e)), EXIT_INTERNAL_ERROR)
    else:
        status(f"Report published to {result.published}", style="success")
