"""Symbol demangling through an external filter.

The demangler reads one mangled symbol per line on stdin and writes one
demangled name per line on stdout, in order (``rustfilt``, ``c++filt``).
"""

from collections.abc import Iterable

import structlog

from covpipe.core.errors import RenderFailure
from covpipe.toolchain.runner import ToolError, ToolNotFoundError, ToolRunner

logger = structlog.get_logger()


def demangle_symbols(
    symbols: Iterable[str],
    runner: ToolRunner,
    demangler: str | None,
) -> dict[str, str]:
    """Map each distinct symbol to its demangled name.

    With no demangler configured every symbol maps to itself and a warning
    is logged.

    Raises:
        RenderFailure: If the demangler is missing, fails, or answers fewer
            lines than it was given.
    """
    unique = sorted(set(symbols))
    if not unique:
        return {}
    if demangler is None:
        logger.warning("demangling_disabled", symbols=len(unique))
        return {s: s for s in unique}

    try:
        result = runner.run([demangler], input="\n".join(unique) + "\n")
    except ToolNotFoundError as e:
        raise RenderFailure.tool_missing(demangler) from e
    except ToolError as e:
        raise RenderFailure.tool_failed(demangler, e.reason) from e
    if not result.ok:
        raise RenderFailure.tool_failed(
            demangler, result.stderr_tail() or f"exit status {result.returncode}"
        )

    names = result.stdout.splitlines()
    if len(names) < len(unique):
        raise RenderFailure.tool_failed(
            demangler, f"returned {len(names)} names for {len(unique)} symbols"
        )

    logger.debug("symbols_demangled", count=len(unique), demangler=demangler)
    return {symbol: name.strip() or symbol for symbol, name in zip(unique, names, strict=False)}
