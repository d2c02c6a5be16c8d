"""Profile merging with summing semantics.

Every snapshot of a run reports into one index. Several binaries and several
processes may execute the same function, so counters are summed per region:

- counter[k] = sum(counter[k] across all snapshots), saturating at 2^64-1
- bitmap[b] = OR(bitmap[b] across all snapshots)

The result is a pure function of the snapshot set: records are keyed by
``(name, hash)`` and emitted sorted, so the order snapshots are read in
never shows up in the index. With ``sparse=True`` functions whose counters
are all zero are left out, since for any one test binary most of the
dependency graph never runs.
"""

import os
from collections.abc import Iterable
from pathlib import Path

import structlog

from covpipe.core.errors import MergeFailure
from covpipe.coverage.profdata import ProfdataTool
from covpipe.coverage.profile import (
    COUNTER_MAX,
    FunctionKey,
    FunctionRecord,
    MergedProfileIndex,
    ProfileSnapshot,
)
from covpipe.coverage.proftext import format_proftext
from covpipe.coverage.snapshots import SnapshotPattern, load_snapshot

logger = structlog.get_logger()


def merge_records(records: Iterable[FunctionRecord]) -> FunctionRecord:
    """Merge records of the same function.

    Args:
        records: FunctionRecords sharing one key.

    Returns:
        A record whose counters are the saturating sums of the inputs.

    Raises:
        MergeFailure: If the inputs disagree on counter or bitmap layout.
    """
    records_list = list(records)
    if not records_list:
        raise ValueError("Cannot merge empty record list")

    first = records_list[0]
    counters = list(first.counters)
    bitmap = list(first.bitmap)

    for record in records_list[1:]:
        if record.key != first.key:
            raise ValueError(f"Cannot merge {record.key} into {first.key}")
        if len(record.counters) != len(counters):
            raise MergeFailure.counter_mismatch(first.name, len(counters), len(record.counters))
        if len(record.bitmap) != len(bitmap):
            raise MergeFailure.counter_mismatch(first.name, len(bitmap), len(record.bitmap))

        for i, value in enumerate(record.counters):
            counters[i] = min(counters[i] + value, COUNTER_MAX)
        for i, byte in enumerate(record.bitmap):
            bitmap[i] |= byte

    return FunctionRecord(
        name=first.name,
        hash=first.hash,
        counters=tuple(counters),
        bitmap=tuple(bitmap),
    )


def merge_snapshots(
    snapshots: Iterable[ProfileSnapshot],
    *,
    sparse: bool = True,
    object_fingerprint: str | None = None,
) -> MergedProfileIndex:
    """Merge snapshots into a single index.

    Args:
        snapshots: Snapshots of one run, in any order.
        sparse: Drop functions that never executed.
        object_fingerprint: Identity of the object list the snapshots came from.

    Returns:
        MergedProfileIndex with records sorted by (name, hash).

    Raises:
        MergeFailure: If snapshots mix instrumentation kinds or disagree on
            a function's counter layout.
    """
    snapshots_list = list(snapshots)

    flags: frozenset[str] | None = None
    grouped: dict[FunctionKey, list[FunctionRecord]] = {}
    for snapshot in snapshots_list:
        if flags is None:
            flags = snapshot.flags
        elif snapshot.flags != flags:
            raise MergeFailure.corrupt_snapshot(
                snapshot.source,
                f"instrumentation kind {sorted(snapshot.flags)} differs from {sorted(flags)}",
            )
        for record in snapshot.records:
            grouped.setdefault(record.key, []).append(record)

    merged: list[FunctionRecord] = []
    for key in sorted(grouped):
        group = grouped[key]
        record = group[0] if len(group) == 1 else merge_records(group)
        if sparse and record.is_zero:
            continue
        merged.append(record)

    return MergedProfileIndex(
        records=tuple(merged),
        sources=tuple(sorted(s.source for s in snapshots_list)),
        flags=flags or frozenset(),
        object_fingerprint=object_fingerprint,
    )


def merge(*snapshots: ProfileSnapshot) -> MergedProfileIndex:
    """Convenience function to merge snapshots as varargs."""
    return merge_snapshots(snapshots)


def write_index(index: MergedProfileIndex, path: Path) -> Path:
    """Write the index in text format, replacing any previous file atomically."""
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(format_proftext(index.records, index.flags))
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise MergeFailure.write_failed(str(path), str(e)) from e
    return path


def merge_profiles(
    directory: Path,
    pattern: SnapshotPattern,
    *,
    profdata: ProfdataTool | None = None,
    object_fingerprint: str | None = None,
) -> MergedProfileIndex:
    """Find, load and merge every snapshot of a run.

    Args:
        directory: Snapshot directory.
        pattern: The run's snapshot naming pattern.
        profdata: Decoder for binary snapshots.
        object_fingerprint: Identity of the object list, recorded in the index.

    Raises:
        MergeFailure: If no snapshot matches, or any snapshot is corrupt.
    """
    paths = pattern.find(directory)
    if not paths:
        raise MergeFailure.no_snapshots(str(directory), pattern.glob)

    logger.info("snapshots_found", count=len(paths), directory=str(directory))
    snapshots = [load_snapshot(p, decoder=profdata) for p in paths]
    index = merge_snapshots(snapshots, object_fingerprint=object_fingerprint)
    logger.info(
        "snapshots_merged",
        snapshots=len(snapshots),
        functions=index.function_count,
        counters=index.counter_count,
    )
    return index
