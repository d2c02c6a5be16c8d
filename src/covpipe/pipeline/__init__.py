"""Stage sequencing for a coverage run."""

from covpipe.pipeline.models import PipelineFailure, PipelineResult, RunContext, Stage
from covpipe.pipeline.orchestrator import Pipeline, publish

__all__ = [
    "Pipeline",
    "PipelineFailure",
    "PipelineResult",
    "RunContext",
    "Stage",
    "publish",
]
