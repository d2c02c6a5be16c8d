"""Build-event and artifact models."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ArtifactRecord:
    """A ``compiler-artifact`` event: one compiled target and its output files."""

    package_id: str
    target_name: str
    target_kinds: tuple[str, ...]
    is_test_profile: bool
    filenames: tuple[str, ...]
    executable: str | None = None


@dataclass(frozen=True, slots=True)
class CompilerMessage:
    """A ``compiler-message`` event (diagnostic from the compiler)."""

    level: str
    rendered: str
    package_id: str = ""

    @property
    def is_error(self) -> bool:
        return self.level == "error" or self.level.startswith("error:")


@dataclass(frozen=True, slots=True)
class BuildFinished:
    """The ``build-finished`` event closing a stream."""

    success: bool


BuildEvent = ArtifactRecord | CompilerMessage | BuildFinished


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """One output file of the compile step."""

    path: str
    kind: str  # target kinds joined with "," (e.g. "lib", "test", "bin")
    is_test_profile: bool
    target_name: str = ""
    package_id: str = ""


@dataclass(frozen=True, slots=True)
class ObjectList:
    """Test binaries of one run, computed once and shared by every stage.

    Paths keep discovery order; duplicates are removed by the discoverer.
    """

    paths: tuple[str, ...]

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    @property
    def fingerprint(self) -> str:
        """Order-insensitive identity of the object set."""
        digest = hashlib.sha256("\n".join(sorted(self.paths)).encode())
        return digest.hexdigest()[:16]

    def as_llvm_args(self) -> list[str]:
        """``-object <path>`` pairs for llvm-cov."""
        args: list[str] = []
        for path in self.paths:
            args.extend(["-object", path])
        return args
