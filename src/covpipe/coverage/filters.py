"""Path exclusion for coverage reports.

One PathFilter is built per run and applied to the export before any
statistics are computed, so the summary and the annotated report see the
same set of files.
"""

import re
from dataclasses import dataclass

from covpipe.coverage.export import CoverageExport


@dataclass(frozen=True, slots=True)
class PathFilter:
    """Removes source files whose path matches ``pattern``.

    An empty pattern excludes nothing.
    """

    pattern: str = ""

    def excludes(self, path: str) -> bool:
        return bool(self.pattern) and re.search(self.pattern, path) is not None

    def apply(self, export: CoverageExport) -> CoverageExport:
        """Drop excluded files and functions defined in excluded files."""
        if not self.pattern:
            return export
        return CoverageExport(
            files=tuple(f for f in export.files if not self.excludes(f.filename)),
            functions=tuple(f for f in export.functions if not self.excludes(f.filename)),
            version=export.version,
            object_fingerprint=export.object_fingerprint,
        )
