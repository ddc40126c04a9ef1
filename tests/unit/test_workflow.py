"""Tests for Workflow execution, persistence and stage management."""
from __future__ import annotations

import threading
from unittest.mock import Mock

import pytest

from stageflow.engine import (
    ActionNotFoundError,
    EmptyWorkflowError,
    Stage,
    StageFailedError,
    StageNotFoundError,
    Workflow,
    WorkflowCancelledError,
    WorkflowInfo,
)


def status(wf, key):
    return wf.store.get_property(key, "status")


@pytest.fixture
def two_stage(trace_action):
    wf = Workflow("wf", "Two stages", "demo", tags=["demo"])
    wf.add_stage(Stage("S1", "First", actions=[trace_action("A1")]))
    wf.add_stage(Stage("S2", "Second", actions=[trace_action("A2")]))
    return wf


class TestWorkflowRecord:
    def test_saved_on_creation(self):
        wf = Workflow("wf", "Name", "desc", tags=["a"])
        info = wf.store.get("workflow:wf", WorkflowInfo)
        assert info.name == "Name"
        assert info.tags == ["a"]
        assert info.stage_ids == []
        meta = wf.store.get_metadata("workflow:wf")
        assert meta.has_all_tags(["a", "system"])
        assert meta.description == "desc"

    def test_add_tag_updates_record(self):
        wf = Workflow("wf", "Name")
        wf.add_tag("x")
        wf.add_tag("x")
        assert wf.tags == ["x"]
        assert wf.store.get("workflow:wf", WorkflowInfo).tags == ["x"]
        assert wf.store.has_tag("workflow:wf", "x")
        assert wf.has_tag("x")
        assert wf.has_all_tags(["x"])
        assert not wf.has_any_tag(["y"])

    def test_add_stage_records_stage_and_actions(self, two_stage):
        assert two_stage.store.get("workflow:wf", WorkflowInfo).stage_ids == ["S1", "S2"]
        meta = two_stage.store.get_metadata("stage:S2")
        assert meta.get_property("order") == 1
        assert meta.get_property("status") == "pending"
        assert meta.get_property("createdBy") == "workflow:wf"
        assert status(two_stage, "action:S2:A2") == "pending"
        assert two_stage.store.get_property("action:S2:A2", "createdBy") == "stage:S2"

    def test_context_slots(self):
        wf = Workflow("wf", "Name")
        assert wf.get_context("tools") is None
        assert wf.get_context("tools", {}) == {}
        wf.set_context("tools", ["ssh"])
        assert wf.get_context("tools") == ["ssh"]


class TestLookup:
    def test_get_stage_prefers_plan(self, two_stage):
        assert two_stage.get_stage("S1") is two_stage.stages[0]

    def test_get_stage_falls_back_to_store(self, two_stage):
        removed = two_stage.stages.pop()
        rebuilt = two_stage.get_stage("S2")
        assert rebuilt is not removed
        assert rebuilt.name == "Second"
        assert rebuilt.actions == []

    def test_get_stage_unknown(self, two_stage):
        with pytest.raises(StageNotFoundError):
            two_stage.get_stage("nope")

    def test_get_action(self, two_stage):
        assert two_stage.get_action("S1", "A1").name == "A1"
        with pytest.raises(ActionNotFoundError):
            two_stage.get_action("S1", "nope")


class TestExecute:
    def test_empty_workflow_fails(self):
        with pytest.raises(EmptyWorkflowError):
            Workflow("wf", "Empty").execute()

    def test_statuses_after_success(self, two_stage):
        two_stage.execute()
        assert two_stage.store.get("trace", list) == ["A1", "A2"]
        assert status(two_stage, "workflow:wf") == "completed"
        assert status(two_stage, "stage:S1") == "completed"
        assert status(two_stage, "stage:S2") == "completed"

    def test_failure_marks_stage_and_workflow(self, trace_action):
        wf = Workflow("wf", "Failing")
        wf.add_stage(Stage("S1", "First", actions=[trace_action("A1", error=ValueError("bad"))]))
        wf.add_stage(Stage("S2", "Second", actions=[trace_action("A2")]))

        with pytest.raises(StageFailedError) as exc_info:
            wf.execute()

        assert str(exc_info.value) == "stage 'S1' failed: action 'A1' failed: bad"
        assert status(wf, "workflow:wf") == "failed"
        assert status(wf, "stage:S1") == "failed"
        assert status(wf, "stage:S2") == "pending"
        assert status(wf, "action:S2:A2") == "pending"

    def test_stages_appended_directly_are_recorded(self, trace_action):
        wf = Workflow("wf", "Direct")
        wf.stages.append(Stage("S", "S", actions=[trace_action("A")]))
        wf.execute()
        assert status(wf, "stage:S") == "completed"
        assert status(wf, "action:S:A") == "completed"

    def test_disabled_stage_is_skipped(self, two_stage):
        two_stage.disable_stage("S1")
        two_stage.execute()
        assert two_stage.store.get("trace", list) == ["A2"]
        assert status(two_stage, "stage:S1") == "skipped"
        assert status(two_stage, "action:S1:A1") == "pending"

    def test_dynamic_stages_inserted_after_current(self, trace_action):
        wf = Workflow("wf", "Dynamic")

        def queue(ctx):
            ctx.add_dynamic_stage(Stage("E1", "E1", "first extra", actions=[trace_action("X1")]))
            ctx.add_dynamic_stage(Stage("E2", "E2", actions=[trace_action("X2")]))

        wf.add_stage(Stage("S", "S", actions=[trace_action("A", then=queue)]))
        wf.add_stage(Stage("T", "T", actions=[trace_action("B")]))
        wf.execute()

        assert [s.id for s in wf.stages] == ["S", "E1", "E2", "T"]
        assert wf.store.get("trace", list) == ["A", "X1", "X2", "B"]
        meta = wf.store.get_metadata("stage:E1")
        assert meta.has_tag("dynamic")
        assert meta.description == "first extra"
        assert meta.get_property("order") == 1
        assert meta.get_property("createdBy") == "stage:S"
        assert wf.store.get_property("stage:E2", "order") == 2
        assert status(wf, "stage:E2") == "completed"
        assert "dynamicStages" not in wf.context
        assert wf.store.get("workflow:wf", WorkflowInfo).stage_ids == ["S", "E1", "E2", "T"]

    def test_logs_lifecycle(self, two_stage):
        logger = Mock()
        two_stage.execute(logger=logger)
        logger.info.assert_any_call("Starting workflow: %s (%s)", "Two stages", "wf")
        logger.info.assert_any_call("Starting stage %d/%d: %s (%s)", 1, 2, "First", "S1")
        logger.info.assert_any_call("Completed stage %d/%d: %s", 2, 2, "Second")
        logger.info.assert_any_call("Workflow completed successfully: %s", "Two stages")


class TestCancellation:
    def test_not_checked_by_default(self, two_stage):
        token = threading.Event()
        token.set()
        two_stage.execute(token)
        assert status(two_stage, "workflow:wf") == "completed"

    def test_checked_between_actions_when_enabled(self, trace_action):
        token = threading.Event()
        wf = Workflow("wf", "Cancellable", check_cancellation=True)
        wf.add_stage(
            Stage(
                "S",
                "S",
                actions=[trace_action("A1", then=lambda ctx: token.set()), trace_action("A2")],
            )
        )
        wf.add_stage(Stage("T", "T", actions=[trace_action("B")]))

        with pytest.raises(StageFailedError) as exc_info:
            wf.execute(token)

        assert isinstance(exc_info.value.__cause__, WorkflowCancelledError)
        assert wf.store.get("trace", list) == ["A1"]
        assert status(wf, "action:S:A1") == "completed"
        assert status(wf, "action:S:A2") == "pending"
        assert status(wf, "stage:S") == "cancelled"
        assert status(wf, "stage:T") == "pending"
        assert status(wf, "workflow:wf") == "cancelled"

    def test_default_comes_from_config(self, monkeypatch):
        from stageflow.config import reset_config

        monkeypatch.setenv("STAGEFLOW_CHECK_CANCELLATION", "true")
        reset_config()
        assert Workflow("wf", "W").check_cancellation is True


class TestStageToggles:
    def test_disable_and_enable_stage_tag_store_entry(self, two_stage):
        two_stage.disable_stage("S1")
        assert not two_stage.is_stage_enabled("S1")
        assert two_stage.store.has_tag("stage:S1", "disabled")

        two_stage.enable_stage("S1")
        assert two_stage.is_stage_enabled("S1")
        assert not two_stage.store.has_tag("stage:S1", "disabled")

    def test_enable_all_stages(self, two_stage):
        two_stage.disable_stage("S1")
        two_stage.disable_stage("S2")
        two_stage.enable_all_stages()
        assert two_stage.is_stage_enabled("S1")
        assert two_stage.is_stage_enabled("S2")
        assert two_stage.list_stages_by_tag("disabled") == []

    def test_disable_unknown_stage(self, two_stage):
        two_stage.disable_stage("later")
        assert not two_stage.is_stage_enabled("later")

    def test_list_stages_by_tag(self, two_stage):
        two_stage.disable_stage("S2")
        assert [s.id for s in two_stage.list_stages_by_tag("disabled")] == ["S2"]

    def test_list_stages_by_status(self, two_stage):
        two_stage.disable_stage("S1")
        two_stage.execute()
        assert [s.id for s in two_stage.list_stages_by_status("skipped")] == ["S1"]
        assert [s.id for s in two_stage.list_stages_by_status("completed")] == ["S2"]
