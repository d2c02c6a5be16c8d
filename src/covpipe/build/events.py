"""Build-event stream parsing.

The compile step emits one JSON object per line (cargo's
``--message-format=json``). Records of interest:

- ``compiler-artifact``: ``profile.test``, ``target.kind``, ``filenames``
- ``compiler-message``: ``message.level``, ``message.rendered``
- ``build-finished``: ``success``

Anything else (build-script output, non-JSON noise) is skipped.
"""

import json
from collections.abc import Iterable, Iterator
from typing import Any

import structlog

from covpipe.build.models import ArtifactRecord, BuildEvent, BuildFinished, CompilerMessage
from covpipe.core.errors import BuildFailure

logger = structlog.get_logger()


def _parse_artifact(record: dict[str, Any], line_no: int) -> ArtifactRecord:
    profile = record.get("profile")
    filenames = record.get("filenames")
    if not isinstance(profile, dict) or not isinstance(filenames, list):
        raise BuildFailure.compile_failed(
            f"malformed compiler-artifact record at line {line_no}",
            line=line_no,
        )

    target = record.get("target") or {}
    kinds = target.get("kind") or []
    return ArtifactRecord(
        package_id=str(record.get("package_id", "")),
        target_name=str(target.get("name", "")),
        target_kinds=tuple(str(k) for k in kinds),
        is_test_profile=profile.get("test") is True,
        filenames=tuple(str(f) for f in filenames),
        executable=record.get("executable"),
    )


def parse_event(line: str, line_no: int = 0) -> BuildEvent | None:
    """Parse one line of the stream; None for lines that carry no event."""
    stripped = line.strip()
    if not stripped:
        return None

    try:
        record = json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("build_event_not_json", line=line_no)
        return None

    if not isinstance(record, dict):
        return None

    reason = record.get("reason")
    if reason == "compiler-artifact":
        return _parse_artifact(record, line_no)

    if reason == "compiler-message":
        message = record.get("message") or {}
        return CompilerMessage(
            level=str(message.get("level", "")),
            rendered=str(message.get("rendered") or message.get("message") or ""),
            package_id=str(record.get("package_id", "")),
        )

    if reason == "build-finished":
        return BuildFinished(success=record.get("success") is True)

    return None


def parse_event_stream(lines: Iterable[str]) -> Iterator[BuildEvent]:
    """Yield typed events from an ordered build-event stream."""
    for line_no, line in enumerate(lines, start=1):
        event = parse_event(line, line_no)
        if event is not None:
            yield event
