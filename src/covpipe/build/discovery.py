"""Test binary discovery.

The object list is computed once from the build-event stream and shared by
every later stage; nothing re-derives it.
"""

from __future__ import annotations

import mmap
from collections.abc import Iterable
from pathlib import Path, PurePath

import structlog

from covpipe.build.models import (
    ArtifactRecord,
    BuildArtifact,
    BuildEvent,
    BuildFinished,
    CompilerMessage,
    ObjectList,
)
from covpipe.config.constants import COVERAGE_MAPPING_MARKERS, DEBUG_SYMBOL_BUNDLE_SUFFIX
from covpipe.core.errors import BuildFailure, DiscoveryMismatch

logger = structlog.get_logger()


def is_debug_symbol_bundle(path: str) -> bool:
    """True for paths inside (or naming) a ``.dSYM`` bundle."""
    return any(part.endswith(DEBUG_SYMBOL_BUNDLE_SUFFIX) for part in PurePath(path).parts)


def collect_artifacts(events: Iterable[BuildEvent]) -> list[BuildArtifact]:
    """Flatten artifact events into one BuildArtifact per output file.

    Raises:
        BuildFailure: If the stream reports a compile error or an
            unsuccessful build.
    """
    artifacts: list[BuildArtifact] = []
    errors: list[str] = []

    for event in events:
        if isinstance(event, CompilerMessage):
            if event.is_error:
                errors.append(event.rendered.strip() or event.level)
        elif isinstance(event, BuildFinished):
            if not event.success:
                raise BuildFailure.compile_failed(
                    errors[0] if errors else "build finished unsuccessfully",
                    errors=errors,
                )
        elif isinstance(event, ArtifactRecord):
            kind = ",".join(event.target_kinds)
            for filename in event.filenames:
                artifacts.append(
                    BuildArtifact(
                        path=filename,
                        kind=kind,
                        is_test_profile=event.is_test_profile,
                        target_name=event.target_name,
                        package_id=event.package_id,
                    )
                )

    if errors:
        raise BuildFailure.compile_failed(errors[0], errors=errors)
    return artifacts


def select_objects(artifacts: Iterable[BuildArtifact]) -> ObjectList:
    """Test-profile outputs minus debug-symbol bundles, de-duplicated in order."""
    seen: dict[str, None] = {}
    for artifact in artifacts:
        if not artifact.is_test_profile:
            continue
        if is_debug_symbol_bundle(artifact.path):
            logger.debug("debug_bundle_skipped", path=artifact.path)
            continue
        seen.setdefault(artifact.path, None)
    return ObjectList(paths=tuple(seen))


def discover_objects(events: Iterable[BuildEvent]) -> ObjectList:
    """Compute the run's object list from the build-event stream.

    Raises:
        BuildFailure: If the build failed.
        DiscoveryMismatch: If no test binary was produced.
    """
    artifacts = collect_artifacts(events)
    objects = select_objects(artifacts)
    if not objects:
        raise DiscoveryMismatch.empty(artifacts_seen=len(artifacts))

    logger.info(
        "objects_discovered",
        count=len(objects),
        artifacts=len(artifacts),
        fingerprint=objects.fingerprint,
    )
    return objects


def has_coverage_mapping(path: Path) -> bool:
    """True if the object carries an LLVM coverage-mapping section."""
    with path.open("rb") as f:
        if path.stat().st_size == 0:
            return False
        with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as data:
            return any(data.find(marker) != -1 for marker in COVERAGE_MAPPING_MARKERS)


def verify_instrumented(objects: ObjectList) -> None:
    """Reject objects compiled without coverage instrumentation.

    Raises:
        BuildFailure: Listing every object that is missing or uninstrumented.
    """
    missing: list[str] = []
    for obj in objects:
        path = Path(obj)
        try:
            instrumented = has_coverage_mapping(path)
        except OSError as e:
            logger.warning("object_unreadable", path=obj, error=str(e))
            instrumented = False
        if not instrumented:
            missing.append(obj)

    if missing:
        raise BuildFailure.not_instrumented(missing)
