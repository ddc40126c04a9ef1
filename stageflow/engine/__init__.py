"""Workflow engine: actions, stages, workflows and the runner."""
from .action import Action, ActionState, BaseAction, FuncAction, StageState
from .constants import (
    PREFIX_ACTION,
    PREFIX_CONFIG,
    PREFIX_DATA,
    PREFIX_STAGE,
    PREFIX_TEMP,
    PREFIX_WORKFLOW,
    PROP_CREATED_BY,
    PROP_DEPENDENCIES,
    PROP_ORDER,
    PROP_STATUS,
    PROP_TYPE,
    TAG_CORE,
    TAG_DISABLED,
    TAG_DYNAMIC,
    TAG_SYSTEM,
    TAG_TEMPORARY,
    Status,
    action_key,
    stage_key,
    workflow_key,
)
from .context import ActionContext
from .errors import (
    ActionFailedError,
    ActionNotFoundError,
    EmptyWorkflowError,
    StageFailedError,
    StageNotFoundError,
    WorkflowCancelledError,
    WorkflowError,
)
from .logger import Logger, NullLogger
from .runner import RunOptions, RunResult, format_results, run_workflow, run_workflows
from .stage import Stage, StageInfo
from .workflow import Workflow, WorkflowInfo
