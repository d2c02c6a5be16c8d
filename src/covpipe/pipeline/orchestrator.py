"""Coverage pipeline orchestration.

Stages run strictly in order and the first failure aborts the run:

    compile -> discover -> [execute] -> merge -> render summary
            -> render annotated -> persist

Every failure surfaces as a PipelineFailure naming the stage. Nothing is
published until the final stage, so a failed run leaves no report behind.
"""

from __future__ import annotations

import contextlib
import errno
import json
import os
import shutil
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import structlog
from rich.console import Console

from covpipe.build.compile import BuildOutput, build_environment, read_event_file, run_build
from covpipe.build.discovery import discover_objects, verify_instrumented
from covpipe.build.execute import execute_tests
from covpipe.build.models import ObjectList
from covpipe.config.models import CovPipeConfig
from covpipe.core.errors import (
    CovPipeError,
    DiscoveryMismatch,
    InternalError,
    PersistFailure,
    RenderFailure,
)
from covpipe.core.logging import clear_run_id, set_run_id
from covpipe.core.progress import pluralize, spinner, status, task
from covpipe.coverage.annotate import AnnotatedReport, SourceReader, build_annotated, read_source
from covpipe.coverage.demangle import demangle_symbols
from covpipe.coverage.export import run_export
from covpipe.coverage.filters import PathFilter
from covpipe.coverage.html_report import write_annotated
from covpipe.coverage.merge import merge_profiles, write_index
from covpipe.coverage.profdata import ProfdataTool
from covpipe.coverage.profile import MergedProfileIndex
from covpipe.coverage.reconcile import reconcile
from covpipe.coverage.snapshots import SnapshotPattern
from covpipe.coverage.stats import FileStats, compute_file_stats
from covpipe.coverage.summary import SummaryReport, build_summary, render_summary, summary_to_dict
from covpipe.pipeline.models import PipelineFailure, PipelineResult, RunContext, Stage
from covpipe.toolchain.runner import SubprocessRunner, ToolRunner

logger = structlog.get_logger()

T = TypeVar("T")


class Pipeline:
    """One coverage run over a workspace.

    Args:
        config: Resolved configuration.
        workspace: Directory the build runs in; relative config paths resolve here.
        runner: Tool runner; defaults to subprocesses with the configured timeout.
        events_file: Recorded build-event stream used instead of running the build.
        summary_json: Also write the summary as JSON to this path.
        console: Console the summary table is printed to (stdout by default).
        source_reader: Reads source files for the annotated report.
    """

    def __init__(
        self,
        config: CovPipeConfig,
        workspace: Path,
        *,
        runner: ToolRunner | None = None,
        events_file: Path | None = None,
        summary_json: Path | None = None,
        console: Console | None = None,
        source_reader: SourceReader = read_source,
    ) -> None:
        self.config = config
        self.workspace = workspace
        self.runner = runner or SubprocessRunner(timeout=config.toolchain.timeout_sec)
        self.events_file = events_file
        self.summary_json = summary_json
        self.console = console
        self.source_reader = source_reader
        self.pattern = SnapshotPattern(config.coverage.snapshot_name_pattern)
        self.path_filter = PathFilter(config.coverage.path_exclusion_regex)
        self.completed: list[Stage] = []

    # -- paths -----------------------------------------------------------

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.workspace / path

    @property
    def snapshot_dir(self) -> Path:
        return self._resolve(self.config.coverage.snapshot_dir)

    @property
    def annotated_path(self) -> Path:
        return self.workspace / self.config.report.annotated_filename

    @property
    def publish_path(self) -> Path:
        destination = self._resolve(self.config.coverage.output_destination)
        return destination / self.config.report.published_name

    # -- stage plumbing --------------------------------------------------

    def _stage(self, stage: Stage, fn: Callable[[], T]) -> T:
        log = logger.bind(stage=stage.value)
        log.debug("stage_start")
        try:
            with task(stage.label):
                result = fn()
        except CovPipeError as e:
            log.error("stage_failed", error=e.error_name, message=e.message)
            raise PipelineFailure(stage, e) from e
        except Exception as e:
            log.exception("stage_crashed")
            error = InternalError.unexpected(str(e), type=type(e).__name__, stage=stage.value)
            raise PipelineFailure(stage, error) from e
        self.completed.append(stage)
        return result

    # -- stages ----------------------------------------------------------

    def environment(self) -> dict[str, str]:
        """Build/test environment carrying the instrumentation and snapshot pattern."""
        return build_environment(
            self.config.coverage,
            self.config.toolchain,
            self.pattern.profile_file(self.snapshot_dir),
        )

    def compile(self) -> tuple[dict[str, str], BuildOutput]:
        env = self.environment()
        if self.events_file is not None:
            return env, read_event_file(self.events_file)
        with spinner("Building", indent=2):
            return env, run_build(self.runner, self.config.toolchain, env, cwd=self.workspace)

    def discover(self, build: BuildOutput) -> ObjectList:
        objects = discover_objects(build.events)
        if self.config.toolchain.verify_instrumentation:
            verify_instrumented(objects)
        status(f"Found {pluralize(len(objects), 'test binary', 'test binaries')}", indent=2)
        return objects

    def execute(self, ctx: RunContext) -> int:
        stale = ctx.pattern.clear(ctx.snapshot_dir)
        if stale:
            logger.info(
                "stale_snapshots_removed", count=len(stale), directory=str(ctx.snapshot_dir)
            )
        with spinner("Running tests", indent=2):
            return execute_tests(self.runner, ctx.objects, ctx.env, cwd=self.workspace)

    def merge(self, ctx: RunContext) -> MergedProfileIndex:
        profdata = ProfdataTool(self.runner, self.config.toolchain.llvm_profdata)
        index = merge_profiles(
            ctx.snapshot_dir,
            ctx.pattern,
            profdata=profdata,
            object_fingerprint=ctx.objects.fingerprint,
        )
        write_index(index, ctx.text_index_path)
        profdata.index(ctx.text_index_path, ctx.index_path)
        status(
            f"Merged {pluralize(len(index.sources), 'snapshot')} into "
            f"{pluralize(index.function_count, 'function')}",
            indent=2,
        )
        return index

    def file_stats(self, ctx: RunContext, index: MergedProfileIndex) -> dict[str, FileStats]:
        """Export coverage once, filter once and compute the shared statistics."""
        if index.object_fingerprint != ctx.objects.fingerprint:
            raise DiscoveryMismatch.diverged(
                str(index.object_fingerprint), ctx.objects.fingerprint
            )
        with spinner("Exporting coverage mapping", indent=2):
            export = run_export(
                self.runner,
                ctx.index_path,
                ctx.objects,
                llvm_cov=self.config.toolchain.llvm_cov,
                ignore_filename_regex=self.path_filter.pattern or None,
                cwd=self.workspace,
            )
        return compute_file_stats(self.path_filter.apply(export))

    def render_summary(self, ctx: RunContext, files: dict[str, FileStats]) -> SummaryReport:
        summary = build_summary(files, ctx.objects)
        render_summary(
            summary,
            self.console,
            use_color=self.config.report.use_color,
            root=str(self.workspace.resolve()),
        )
        if self.summary_json is not None:
            try:
                self.summary_json.write_text(json.dumps(summary_to_dict(summary), indent=2))
            except OSError as e:
                raise RenderFailure.write_failed(str(self.summary_json), str(e)) from e
        return summary

    def render_annotated(
        self,
        ctx: RunContext,
        files: dict[str, FileStats],
        summary: SummaryReport,
    ) -> AnnotatedReport:
        symbols = [name for stats in files.values() for g in stats.functions for name in g.symbols]
        demangled = demangle_symbols(symbols, self.runner, self.config.toolchain.demangler)
        annotated = build_annotated(
            files,
            demangled,
            objects=tuple(ctx.objects),
            reader=self.source_reader,
        )
        reconcile(summary, annotated)
        write_annotated(annotated, self.annotated_path, title=self.config.report.title)
        return annotated

    def persist(self) -> Path:
        return publish(self.annotated_path, self.publish_path)

    # -- driver ----------------------------------------------------------

    def run(self) -> PipelineResult:
        """Run every stage in order.

        Raises:
            PipelineFailure: On the first failing stage.
        """
        set_run_id(uuid.uuid4().hex[:12])
        try:
            return self._run()
        finally:
            clear_run_id()

    def _run(self) -> PipelineResult:
        self.completed = []
        env, build = self._stage(Stage.COMPILE, self.compile)
        objects = self._stage(Stage.DISCOVER, lambda: self.discover(build))

        ctx = RunContext(
            objects=objects,
            pattern=self.pattern,
            snapshot_dir=self.snapshot_dir,
            env=env,
        )

        if self.config.toolchain.run_tests:
            self._stage(Stage.EXECUTE, lambda: self.execute(ctx))

        index = self._stage(Stage.MERGE, lambda: self.merge(ctx))

        files: dict[str, FileStats] = {}

        def _summary() -> SummaryReport:
            files.update(self.file_stats(ctx, index))
            return self.render_summary(ctx, files)

        summary = self._stage(Stage.RENDER_SUMMARY, _summary)
        annotated = self._stage(
            Stage.RENDER_ANNOTATED, lambda: self.render_annotated(ctx, files, summary)
        )
        published = self._stage(Stage.PERSIST, self.persist)

        logger.info("pipeline_done", published=str(published), objects=len(objects))
        return PipelineResult(
            objects=objects,
            index=index,
            summary=summary,
            annotated=annotated,
            published=published,
            stages=list(self.completed),
        )


def publish(source: Path, destination: Path) -> Path:
    """Move the rendered report to its published location by atomic rename.

    Across filesystems the report is first copied next to the destination,
    then renamed into place.

    Raises:
        PersistFailure: If the report cannot be moved.
    """
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.replace(source, destination)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            staging = destination.with_name(f".{destination.name}.tmp")
            shutil.copy2(source, staging)
            os.replace(staging, destination)
            source.unlink()
    except OSError as e:
        with contextlib.suppress(OSError):
            source.unlink(missing_ok=True)
        raise PersistFailure.relocate_failed(str(source), str(destination), str(e)) from e

    logger.debug("report_published", path=str(destination))
    return destination

