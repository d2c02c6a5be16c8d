"""Snapshot naming and loading.

A run's snapshots all share the literal prefix of the configured
``LLVM_PROFILE_FILE`` pattern; the placeholders (%p, %m, ...) make each file
unique per process. The same pattern drives the compile environment, the
merge glob and the index file name, so the three cannot disagree.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from covpipe.config.constants import (
    DEFAULT_INDEX_STEM,
    INDEXED_PROFILE_SUFFIX,
    SNAPSHOT_PLACEHOLDER_RE,
    TEXT_PROFILE_SUFFIX,
)
from covpipe.core.errors import MergeFailure
from covpipe.coverage.profile import ProfileSnapshot
from covpipe.coverage.proftext import parse_proftext

if TYPE_CHECKING:
    from covpipe.coverage.profdata import ProfdataTool

# Little-endian magics of raw (lprofr) and indexed (lprofi) binary profiles
_BINARY_MAGICS = (
    (0xFF6C70726F667281).to_bytes(8, "little"),
    (0xFF6C70726F667269).to_bytes(8, "little"),
)


class SnapshotPattern:
    """A snapshot naming pattern, e.g. ``stroka-%m.profraw``."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern

    def __repr__(self) -> str:
        return f"SnapshotPattern({self.pattern!r})"

    @property
    def glob(self) -> str:
        """Glob matching every snapshot of the run."""
        return SNAPSHOT_PLACEHOLDER_RE.sub("*", self.pattern)

    @property
    def prefix(self) -> str:
        """Literal text before the first placeholder."""
        match = SNAPSHOT_PLACEHOLDER_RE.search(self.pattern)
        return self.pattern[: match.start()] if match else self.pattern

    @property
    def index_stem(self) -> str:
        return self.prefix.rstrip("-_.") or DEFAULT_INDEX_STEM

    def profile_file(self, directory: Path) -> Path:
        """Absolute LLVM_PROFILE_FILE value for processes of this run."""
        return directory.resolve() / self.pattern

    def text_index_path(self, directory: Path) -> Path:
        return directory / f"{self.index_stem}{TEXT_PROFILE_SUFFIX}"

    def index_path(self, directory: Path) -> Path:
        return directory / f"{self.index_stem}{INDEXED_PROFILE_SUFFIX}"

    def find(self, directory: Path) -> list[Path]:
        """All snapshot files of the run, sorted by name."""
        if not directory.is_dir():
            return []
        own_outputs = {self.text_index_path(directory).name, self.index_path(directory).name}
        return sorted(
            p
            for p in directory.glob(self.glob)
            if p.is_file() and p.name not in own_outputs
        )

    def clear(self, directory: Path) -> list[Path]:
        """Remove snapshots left in ``directory`` by an earlier run.

        Raises:
            MergeFailure: If a stale snapshot cannot be removed.
        """
        stale = self.find(directory)
        for path in stale:
            try:
                path.unlink()
            except OSError as e:
                raise MergeFailure.stale_snapshot(str(path), str(e)) from e
        return stale


def is_binary_profile(path: Path) -> bool:
    """True for raw/indexed binary profiles, False for the text format."""
    with path.open("rb") as f:
        head = f.read(8)
    return head in _BINARY_MAGICS


def load_snapshot(path: Path, *, decoder: ProfdataTool | None = None) -> ProfileSnapshot:
    """Read one snapshot, decoding binary profiles through llvm-profdata.

    Raises:
        MergeFailure: If the file is unreadable, malformed, or binary with
            no decoder available.
    """
    try:
        binary = is_binary_profile(path)
        text = "" if binary else path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise MergeFailure.corrupt_snapshot(str(path), f"unreadable: {e}") from e

    if binary:
        if decoder is None:
            raise MergeFailure.corrupt_snapshot(str(path), "binary profile needs llvm-profdata")
        text = decoder.decode(path)
    elif not text.strip():
        raise MergeFailure.corrupt_snapshot(str(path), "empty snapshot")

    return parse_proftext(text, source=str(path))
