"""Rich rendering of run results and workflow state.

Falls back to the plain-text summary when rich output is turned off
(``STAGEFLOW_RICH_OUTPUT=false``).
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import TYPE_CHECKING, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import get_config
from ..engine.constants import PROP_STATUS, Status, stage_key
from ..engine.runner import RunResult, format_results
from ..store import KeyExpiredError, KeyNotFoundError, PropertyNotFoundError

if TYPE_CHECKING:
    from ..engine.workflow import Workflow

_STATUS_STYLES = {
    Status.PENDING.value: "dim",
    Status.RUNNING.value: "blue",
    Status.COMPLETED.value: "green",
    Status.FAILED.value: "red",
    Status.SKIPPED.value: "yellow",
    Status.CANCELLED.value: "magenta",
}


class ThreadSafeConsole:
    """Thread-safe wrapper around Rich Console."""

    def __init__(self, console: Console):
        self._console = console
        self._lock = threading.RLock()

    @property
    def raw(self) -> Console:
        return self._console

    def print(self, *args, **kwargs):
        with self._lock:
            self._console.print(*args, **kwargs)


class ConsoleManager:
    """Renders workflow results to the terminal."""

    def __init__(
        self,
        verbose: bool = False,
        rich_output: Optional[bool] = None,
        console: Optional[Console] = None,
    ):
        self.verbose = verbose
        self.rich_output = get_config().rich_output if rich_output is None else rich_output
        if self.rich_output:
            self.console: Optional[ThreadSafeConsole] = ThreadSafeConsole(console or Console(stderr=True))
        else:
            self.console = None

    def setup_logging(self, logger: logging.Logger) -> None:
        """Attach a RichHandler to ``logger`` once and set its level from ``verbose``."""
        if self.console is not None and not any(isinstance(h, RichHandler) for h in logger.handlers):
            logger.addHandler(
                RichHandler(
                    console=self.console.raw,
                    show_time=True,
                    show_path=self.verbose,
                    rich_tracebacks=True,
                )
            )
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def build_results_table(self, results: Sequence[RunResult]) -> Table:
        table = Table(title="Workflow Runs")
        table.add_column("#", justify="right")
        table.add_column("Workflow", style="cyan")
        table.add_column("Status", style="bold")
        table.add_column("Duration", justify="right", style="green")
        table.add_column("Error", style="red")

        for i, result in enumerate(results, start=1):
            status = "[green]SUCCESS[/green]" if result.success else "[red]FAILED[/red]"
            table.add_row(
                str(i),
                result.workflow_id,
                status,
                f"{result.elapsed_ms}ms",
                str(result.error) if result.error is not None else "",
            )
        succeeded = sum(1 for r in results if r.success)
        table.caption = f"{succeeded}/{len(results)} workflows succeeded"
        return table

    def print_results(self, results: Sequence[RunResult]) -> None:
        """Print a run summary table, or the plain summary without rich."""
        if self.console is None:
            print(format_results(results), file=sys.stderr)
            return
        if not results:
            self.console.print("No workflows executed")
            return
        self.console.print(self.build_results_table(results))

    def build_stage_table(self, workflow: "Workflow") -> Table:
        """One row per stage with its recorded status and tags."""
        table = Table(title=f"{workflow.name} ({workflow.id})")
        table.add_column("Order", justify="right")
        table.add_column("Stage", style="cyan")
        table.add_column("Status")
        table.add_column("Actions", justify="right")
        table.add_column("Tags")

        for i, stage in enumerate(workflow.stages):
            try:
                status = str(workflow.store.get_property(stage_key(stage.id), PROP_STATUS))
            except (KeyNotFoundError, KeyExpiredError, PropertyNotFoundError):
                status = "unknown"
            style = _STATUS_STYLES.get(status, "white")
            table.add_row(
                str(i),
                stage.id,
                f"[{style}]{status}[/{style}]",
                str(len(stage.actions)),
                ", ".join(stage.tags),
            )
        return table

    def print_stages(self, workflow: "Workflow") -> None:
        if self.console is None:
            for i, stage in enumerate(workflow.stages):
                print(f"{i}: {stage.id}", file=sys.stderr)
            return
        self.console.print(self.build_stage_table(workflow))
