"""Optional in-pipeline test execution.

Normally an external test runner produces the snapshots. When configured,
the pipeline runs each discovered binary once itself, with the same
snapshot environment the build used.
"""

from collections.abc import Mapping
from pathlib import Path

import structlog

from covpipe.build.models import ObjectList
from covpipe.core.errors import BuildFailure, ExecutionFailure
from covpipe.toolchain.runner import ToolError, ToolNotFoundError, ToolRunner

logger = structlog.get_logger()


def execute_tests(
    runner: ToolRunner,
    objects: ObjectList,
    env: Mapping[str, str],
    *,
    cwd: Path | None = None,
) -> int:
    """Run every object once; returns the number of binaries run.

    Raises:
        ExecutionFailure: If a binary exits non-zero or cannot be started.
        BuildFailure: If a discovered binary does not exist.
    """
    for obj in objects:
        try:
            result = runner.run([obj], cwd=cwd, env=env)
        except ToolNotFoundError as e:
            raise BuildFailure.compile_failed(f"test binary missing: {obj}") from e
        except ToolError as e:
            raise ExecutionFailure.test_failed(obj, -1) from e
        if not result.ok:
            logger.error("test_binary_failed", binary=obj, returncode=result.returncode)
            raise ExecutionFailure.test_failed(obj, result.returncode)
        logger.debug("test_binary_done", binary=obj)
    return len(objects)
