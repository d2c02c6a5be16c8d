"""llvm-profdata invocations.

Two uses: decoding a binary ``.profraw`` snapshot into the text format so it
can be merged in-process, and indexing the merged text profile into the
``.profdata`` form llvm-cov reads.
"""

from pathlib import Path

import structlog

from covpipe.core.errors import MergeFailure
from covpipe.toolchain.runner import ToolError, ToolNotFoundError, ToolRunner

logger = structlog.get_logger()


class ProfdataTool:
    """Thin wrapper over the llvm-profdata executable."""

    def __init__(self, runner: ToolRunner, executable: str = "llvm-profdata") -> None:
        self.runner = runner
        self.executable = executable

    def _run(self, args: list[str], *, snapshot: Path | None = None) -> str:
        try:
            result = self.runner.run([self.executable, *args])
        except ToolNotFoundError as e:
            raise MergeFailure.tool_failed(self.executable, "executable not found") from e
        except ToolError as e:
            raise MergeFailure.tool_failed(self.executable, e.reason) from e
        if not result.ok:
            if snapshot is not None:
                # The tool ran; it rejected the input
                raise MergeFailure.corrupt_snapshot(
                    str(snapshot), result.stderr_tail() or f"exit status {result.returncode}"
                )
            raise MergeFailure.tool_failed(
                self.executable,
                result.stderr_tail() or f"exit status {result.returncode}",
            )
        return result.stdout

    def decode(self, snapshot: Path) -> str:
        """Return the text form of a binary snapshot."""
        logger.debug("snapshot_decode", path=str(snapshot))
        return self._run(["merge", "-text", "-o", "-", str(snapshot)], snapshot=snapshot)

    def index(self, text_profile: Path, output: Path) -> Path:
        """Index a text profile into ``output`` for llvm-cov."""
        self._run(["merge", "-sparse", str(text_profile), "-o", str(output)])
        logger.debug("profile_indexed", source=str(text_profile), output=str(output))
        return output
