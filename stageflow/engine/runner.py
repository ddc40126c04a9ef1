"""Run one workflow or a batch and summarise the outcome."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import get_config
from .logger import Logger, NullLogger
from .workflow import Workflow


@dataclass
class RunOptions:
    """Options for ``run_workflow`` and ``run_workflows``.

    Attributes:
        logger: Engine logger; a no-op logger when unset
        cancel_token: Event handed to actions; a fresh, never-set event when unset
        ignore_errors: Keep running a batch after a workflow fails
    """

    logger: Optional[Logger] = None
    cancel_token: Optional[threading.Event] = None
    ignore_errors: bool = field(default_factory=lambda: get_config().ignore_errors)


@dataclass
class RunResult:
    """Outcome of one workflow run.

    Attributes:
        workflow_id: Id of the workflow
        success: True when the workflow completed
        error: Exception raised by the run, if any
        elapsed: Wall-clock duration in seconds
    """

    workflow_id: str
    success: bool
    error: Optional[Exception] = None
    elapsed: float = 0.0

    @property
    def elapsed_ms(self) -> int:
        return int(round(self.elapsed * 1000))


def run_workflow(workflow: Workflow, options: Optional[RunOptions] = None) -> RunResult:
    """Execute a workflow and capture its outcome instead of raising."""
    options = options or RunOptions()
    logger = options.logger or NullLogger()
    cancel_token = options.cancel_token or threading.Event()

    start = time.perf_counter()
    error: Optional[Exception] = None
    try:
        workflow.execute(cancel_token, logger)
    except Exception as e:
        error = e

    return RunResult(
        workflow_id=workflow.id,
        success=error is None,
        error=error,
        elapsed=time.perf_counter() - start,
    )


def run_workflows(
    workflows: Sequence[Workflow], options: Optional[RunOptions] = None
) -> List[RunResult]:
    """Run workflows in order.

    Stops after the first failure unless ``options.ignore_errors`` is set.
    """
    options = options or RunOptions()
    results: List[RunResult] = []
    for wf in workflows:
        result = run_workflow(wf, options)
        results.append(result)
        if not result.success and not options.ignore_errors:
            break
    return results


def format_results(results: Sequence[RunResult]) -> str:
    """Plain-text summary: one line per run plus a success count."""
    if not results:
        return "No workflows executed"

    lines = []
    succeeded = 0
    for i, result in enumerate(results, start=1):
        status = "SUCCESS" if result.success else "FAILED"
        if result.success:
            succeeded += 1
        lines.append(f"Workflow {i}: {result.workflow_id} - {status} ({result.elapsed_ms}ms)\n")
        if result.error is not None:
            lines.append(f"  Error: {result.error}\n")

    lines.append(f"\nSummary: {succeeded}/{len(results)} workflows succeeded\n")
    return "".join(lines)
