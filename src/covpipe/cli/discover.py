"""covpipe discover command - list the test binaries of a build."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from covpipe.build.compile import read_event_file
from covpipe.build.discovery import discover_objects, verify_instrumented
from covpipe.build.events import parse_event_stream
from covpipe.cli.utils import fail
from covpipe.core.errors import BuildFailure, DiscoveryMismatch
from covpipe.pipeline.models import Stage


@click.command()
@click.argument(
    "events_file",
    default=None,
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--verify", is_flag=True, help="Check each binary carries coverage mapping")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def discover_command(events_file: Path | None, verify: bool, as_json: bool) -> None:
    """List test binaries found in a build-event stream.

    EVENTS_FILE holds one JSON build message per line; stdin is read when
    it is omitted.
    """
    try:
        if events_file is not None:
            events = read_event_file(events_file).events
        else:
            events = tuple(parse_event_stream(sys.stdin))
        objects = discover_objects(events)
        if verify:
            verify_instrumented(objects)
    except (BuildFailure, DiscoveryMismatch) as e:
        stage = Stage.DISCOVER if isinstance(e, DiscoveryMismatch) else Stage.COMPILE
        fail(e, stage.exit_code, stage=stage.value)

    if as_json:
        click.echo(json.dumps({"objects": list(objects), "fingerprint": objects.fingerprint}))
    else:
        for path in objects:
            click.echo(path)
