"""Tests for the workflow runner and result formatting."""
from __future__ import annotations

import threading
from unittest.mock import Mock

from stageflow.engine import (
    RunOptions,
    RunResult,
    Stage,
    StageFailedError,
    Workflow,
    format_results,
    run_workflow,
    run_workflows,
)


def make_workflow(wf_id, trace_action, error=None):
    wf = Workflow(wf_id, wf_id)
    wf.add_stage(Stage("S", "S", actions=[trace_action(f"{wf_id}-A", error=error)]))
    return wf


class TestRunWorkflow:
    def test_success(self, trace_action):
        result = run_workflow(make_workflow("ok", trace_action))
        assert result.workflow_id == "ok"
        assert result.success is True
        assert result.error is None
        assert result.elapsed >= 0

    def test_failure_is_captured(self, trace_action):
        result = run_workflow(make_workflow("bad", trace_action, error=RuntimeError("nope")))
        assert result.success is False
        assert isinstance(result.error, StageFailedError)
        assert "nope" in str(result.error)

    def test_options_are_passed_through(self, trace_action):
        token = threading.Event()
        logger = Mock()
        seen = []

        wf = Workflow("wf", "W")
        wf.add_stage(Stage("S", "S", actions=[trace_action("A", then=lambda ctx: seen.append(ctx.cancel_token))]))
        run_workflow(wf, RunOptions(logger=logger, cancel_token=token))

        assert seen == [token]
        logger.info.assert_any_call("Starting workflow: %s (%s)", "W", "wf")

    def test_empty_workflow_fails(self):
        result = run_workflow(Workflow("empty", "Empty"))
        assert result.success is False


class TestRunWorkflows:
    def test_stops_on_first_failure(self, trace_action):
        workflows = [
            make_workflow("one", trace_action),
            make_workflow("two", trace_action, error=ValueError("x")),
            make_workflow("three", trace_action),
        ]
        results = run_workflows(workflows)
        assert [r.workflow_id for r in results] == ["one", "two"]
        assert [r.success for r in results] == [True, False]

    def test_ignore_errors_runs_everything(self, trace_action):
        workflows = [
            make_workflow("one", trace_action, error=ValueError("x")),
            make_workflow("two", trace_action),
        ]
        results = run_workflows(workflows, RunOptions(ignore_errors=True))
        assert [r.success for r in results] == [False, True]

    def test_ignore_errors_default_from_environment(self, monkeypatch):
        from stageflow.config import reset_config

        assert RunOptions().ignore_errors is False
        monkeypatch.setenv("STAGEFLOW_IGNORE_ERRORS", "yes")
        reset_config()
        assert RunOptions().ignore_errors is True

    def test_empty_batch(self):
        assert run_workflows([]) == []


class TestFormatResults:
    def test_no_results(self):
        assert format_results([]) == "No workflows executed"

    def test_lines_and_summary(self):
        results = [
            RunResult("build", True, elapsed=0.012),
            RunResult("deploy", False, error=RuntimeError("boom"), elapsed=1.5),
        ]
        assert format_results(results) == (
            "Workflow 1: build - SUCCESS (12ms)\n"
            "Workflow 2: deploy - FAILED (1500ms)\n"
            "  Error: boom\n"
            "\n"
            "Summary: 1/2 workflows succeeded\n"
        )

    def test_elapsed_ms_rounds(self):
        assert RunResult("x", True, elapsed=0.0004).elapsed_ms == 0
        assert RunResult("x", True, elapsed=0.0026).elapsed_ms == 3
