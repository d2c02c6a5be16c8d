"""Profile counter data model.

A raw snapshot and the merged index share one representation: function
records keyed by ``(name, hash)``, each holding one execution counter per
instrumented region. The hash identifies the function's control-flow shape;
two records with the same key must have the same counter layout.
"""

from __future__ import annotations

from dataclasses import dataclass

COUNTER_MAX = 2**64 - 1
"""Counters are unsigned 64-bit; sums saturate here."""

FunctionKey = tuple[str, int]


@dataclass(frozen=True, slots=True)
class FunctionRecord:
    """Counters for one instrumented function."""

    name: str
    hash: int
    counters: tuple[int, ...]
    bitmap: tuple[int, ...] = ()  # MC/DC bitmap bytes, OR-merged

    @property
    def key(self) -> FunctionKey:
        return (self.name, self.hash)

    @property
    def is_zero(self) -> bool:
        """True when nothing in this function ever executed."""
        return not any(self.counters) and not any(self.bitmap)

    @property
    def entry_count(self) -> int:
        """Execution count of the function entry (first counter)."""
        return self.counters[0] if self.counters else 0


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    """Counters dumped by one test process."""

    source: str
    records: tuple[FunctionRecord, ...]
    flags: frozenset[str] = frozenset()  # header flags, e.g. {"ir"}


@dataclass(frozen=True, slots=True)
class MergedProfileIndex:
    """Sparse, consolidated counters of one run.

    Records are sorted by key and, when built sparse, never all-zero.
    """

    records: tuple[FunctionRecord, ...]
    sources: tuple[str, ...]
    flags: frozenset[str] = frozenset()
    object_fingerprint: str | None = None

    def by_key(self) -> dict[FunctionKey, FunctionRecord]:
        return {r.key: r for r in self.records}

    def find(self, name: str) -> list[FunctionRecord]:
        """All records for a symbol name (one per hash)."""
        return [r for r in self.records if r.name == name]

    @property
    def function_count(self) -> int:
        return len(self.records)

    @property
    def counter_count(self) -> int:
        return sum(len(r.counters) for r in self.records)
