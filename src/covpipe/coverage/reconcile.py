"""Summary / annotated reconciliation."""

import structlog

from covpipe.core.errors import RenderFailure
from covpipe.coverage.annotate import AnnotatedReport
from covpipe.coverage.summary import SummaryReport

logger = structlog.get_logger()


def reconcile(summary: SummaryReport, annotated: AnnotatedReport) -> None:
    """Check that both reports describe the same files with the same totals.

    Raises:
        RenderFailure: On any divergence.
    """
    summary_paths = [row.path for row in summary.rows]
    annotated_paths = [f.path for f in annotated.files]
    if summary_paths != annotated_paths:
        raise RenderFailure.totals_diverged(
            "file", len(summary_paths), len(annotated_paths)
        )

    lines, regions, functions = annotated.totals()
    for metric, expected, actual in (
        ("line", summary.lines, lines),
        ("region", summary.regions, regions),
        ("function", summary.functions, functions),
    ):
        if expected != actual:
            raise RenderFailure.totals_diverged(metric, expected, actual)

    logger.debug(
        "reports_reconciled",
        files=len(summary_paths),
        lines=str(summary.lines),
        regions=str(summary.regions),
        functions=str(summary.functions),
    )
