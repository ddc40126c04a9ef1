"""Exceptions raised by the workflow engine."""
from __future__ import annotations


class WorkflowError(Exception):
    """Base class for engine errors."""


class ActionFailedError(WorkflowError):
    """An action returned an error; the stage stopped at it."""

    def __init__(self, action_name: str, cause: BaseException):
        self.action_name = action_name
        self.cause = cause
        super().__init__(f"action '{action_name}' failed: {cause}")


class StageFailedError(WorkflowError):
    """A stage failed; the workflow stopped at it."""

    def __init__(self, stage_id: str, cause: BaseException):
        self.stage_id = stage_id
        self.cause = cause
        super().__init__(f"stage '{stage_id}' failed: {cause}")


class EmptyWorkflowError(WorkflowError):
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"workflow '{workflow_id}' has no stages")


class StageNotFoundError(WorkflowError, LookupError):
    def __init__(self, stage_id: str):
        self.stage_id = stage_id
        super().__init__(f"stage not found: {stage_id}")


class ActionNotFoundError(WorkflowError, LookupError):
    def __init__(self, stage_id: str, action_name: str):
        self.stage_id = stage_id
        self.action_name = action_name
        super().__init__(f"action '{action_name}' not found in stage '{stage_id}'")


class WorkflowCancelledError(WorkflowError):
    """The cancellation token was set before an action started."""

    def __init__(self, stage_id: str, action_name: str):
        self.stage_id = stage_id
        self.action_name = action_name
        super().__init__(f"workflow cancelled before action '{action_name}' in stage '{stage_id}'")
