"""LLVM text instrumentation profile format.

The format ``llvm-profdata merge -text`` writes and ``llvm-profdata``
accepts as input::

    # IR level Instrumentation Flag
    :ir
    main
    # Func Hash:
    1234
    # Num Counters:
    2
    # Counter Values:
    10
    0
    # Num Bitmap Bytes:
    $1
    # Bitmap Byte Values:
    0x3

Lines starting with ``#`` are comments and blank lines separate records.
Header flags (``:ir``, ``:fe``, ``:csir`` ...) precede the first record; no
flag means front-end instrumentation. Value-profile data and temporal
traces are not coverage data and are rejected.
"""

from collections.abc import Iterator

from covpipe.core.errors import MergeFailure
from covpipe.coverage.profile import COUNTER_MAX, FunctionRecord, ProfileSnapshot

_UNSUPPORTED_FLAGS = frozenset({"temporal_prof_traces", "memprof"})


class _Lines:
    """Cursor over significant lines (comments and blanks removed)."""

    def __init__(self, text: str, source: str) -> None:
        self.source = source
        self._lines = [
            (no, stripped)
            for no, raw in enumerate(text.splitlines(), start=1)
            if (stripped := raw.strip()) and not stripped.startswith("#")
        ]
        self._pos = 0

    def at_end(self) -> bool:
        return self._pos >= len(self._lines)

    def peek(self) -> str | None:
        return None if self.at_end() else self._lines[self._pos][1]

    @property
    def line_no(self) -> int | None:
        if self.at_end():
            return self._lines[-1][0] if self._lines else None
        return self._lines[self._pos][0]

    def take(self, what: str) -> str:
        if self.at_end():
            raise self.error(f"unexpected end of file, expected {what}")
        value = self._lines[self._pos][1]
        self._pos += 1
        return value

    def take_int(self, what: str, *, base: int = 10, maximum: int = COUNTER_MAX) -> int:
        line_no = self.line_no
        raw = self.take(what)
        try:
            value = int(raw, base)
        except ValueError:
            raise MergeFailure.corrupt_snapshot(
                self.source, f"expected {what}, got {raw!r}", line_no
            ) from None
        if not 0 <= value <= maximum:
            raise MergeFailure.corrupt_snapshot(self.source, f"{what} out of range", line_no)
        return value

    def error(self, reason: str) -> MergeFailure:
        return MergeFailure.corrupt_snapshot(self.source, reason, self.line_no)


def _is_int(value: str) -> bool:
    return value.isdigit()


def _read_record(lines: _Lines) -> FunctionRecord:
    name = lines.take("function name")
    func_hash = lines.take_int("function hash")
    num_counters = lines.take_int("counter count", maximum=1 << 32)
    if num_counters == 0:
        raise lines.error(f"function {name} has no counters")
    counters = tuple(lines.take_int("counter value") for _ in range(num_counters))

    bitmap: tuple[int, ...] = ()
    nxt = lines.peek()
    if nxt is not None and nxt.startswith("$"):
        line_no = lines.line_no
        raw = lines.take("bitmap byte count")
        try:
            num_bytes = int(raw[1:])
        except ValueError:
            raise MergeFailure.corrupt_snapshot(
                lines.source, f"bad bitmap byte count {raw!r}", line_no
            ) from None
        bitmap = tuple(lines.take_int("bitmap byte", base=0, maximum=0xFF) for _ in range(num_bytes))

    # A bare integer after the counters is a value-kind count
    nxt = lines.peek()
    if nxt is not None and _is_int(nxt):
        if lines.take_int("value kind count") != 0:
            raise lines.error("value profile data is not supported")

    return FunctionRecord(name=name, hash=func_hash, counters=counters, bitmap=bitmap)


def parse_proftext(text: str, source: str = "<text>") -> ProfileSnapshot:
    """Parse a text profile into a snapshot.

    Raises:
        MergeFailure: If the text is malformed (corrupt snapshot).
    """
    lines = _Lines(text, source)

    flags: set[str] = set()
    while (nxt := lines.peek()) is not None and nxt.startswith(":"):
        flag = lines.take("header flag")[1:].strip().lower()
        if flag in _UNSUPPORTED_FLAGS:
            raise lines.error(f"unsupported profile section :{flag}")
        if flag != "fe":
            flags.add(flag)

    records: list[FunctionRecord] = []
    while not lines.at_end():
        records.append(_read_record(lines))

    return ProfileSnapshot(source=source, records=tuple(records), flags=frozenset(flags))


def iter_proftext(records: tuple[FunctionRecord, ...], flags: frozenset[str]) -> Iterator[str]:
    """Yield the text-format lines for a set of records."""
    if flags:
        yield "# IR level Instrumentation Flag"
        for flag in sorted(flags):
            yield f":{flag}"
    for record in records:
        yield record.name
        yield "# Func Hash:"
        yield str(record.hash)
        yield "# Num Counters:"
        yield str(len(record.counters))
        yield "# Counter Values:"
        yield from (str(c) for c in record.counters)
        if record.bitmap:
            yield "# Num Bitmap Bytes:"
            yield f"${len(record.bitmap)}"
            yield "# Bitmap Byte Values:"
            yield from (f"0x{b:x}" for b in record.bitmap)
        yield ""


def format_proftext(records: tuple[FunctionRecord, ...], flags: frozenset[str]) -> str:
    return "\n".join(iter_proftext(records, flags)) + "\n"
