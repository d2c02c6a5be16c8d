"""covpipe merge command - merge snapshots into one profile index."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from covpipe.cli.utils import config_option, fail, load_cli_config, workspace_option
from covpipe.core.errors import MergeFailure
from covpipe.core.progress import pluralize, status
from covpipe.coverage.merge import merge_profiles, write_index
from covpipe.coverage.profdata import ProfdataTool
from covpipe.coverage.snapshots import SnapshotPattern
from covpipe.pipeline.models import Stage
from covpipe.toolchain.runner import SubprocessRunner


@click.command()
@click.argument(
    "directory",
    default=None,
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@workspace_option
@config_option
@click.option("--pattern", default=None, help="Snapshot naming pattern (coverage.snapshot_name_pattern)")
@click.option("--text-only", is_flag=True, help="Write only the text index; skip llvm-profdata")
@click.pass_context
def merge_command(
    ctx: click.Context,
    directory: Path | None,
    workspace: Path,
    config_file: Path | None,
    pattern: str | None,
    text_only: bool,
) -> None:
    """Merge every snapshot of a run into one index.

    DIRECTORY holds the snapshots (default: coverage.snapshot_dir). The
    text index is written next to them as <prefix>.proftext and indexed to
    <prefix>.profdata.
    """
    overrides: dict[str, Any] = {}
    if pattern is not None:
        overrides["coverage"] = {"snapshot_name_pattern": pattern}

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_cli_config(workspace, config_file, verbose=verbose, **overrides)

    snapshot_dir = directory or workspace / config.coverage.snapshot_dir
    snapshot_pattern = SnapshotPattern(config.coverage.snapshot_name_pattern)
    profdata = ProfdataTool(
        SubprocessRunner(timeout=config.toolchain.timeout_sec),
        config.toolchain.llvm_profdata,
    )

    try:
        index = merge_profiles(snapshot_dir, snapshot_pattern, profdata=profdata)
        text_path = write_index(index, snapshot_pattern.text_index_path(snapshot_dir))
        output = text_path
        if not text_only:
            output = profdata.index(text_path, snapshot_pattern.index_path(snapshot_dir))
    except MergeFailure as e:
        fail(e, Stage.MERGE.exit_code, stage=Stage.MERGE.value)

    status(
        f"Merged {pluralize(len(index.sources), 'snapshot')} "
        f"({pluralize(index.function_count, 'function')}) into {output}",
        style="success",
    )
