"""In-process workflow orchestration over a typed key/value store."""
from .config import EngineConfig, get_config, reset_config
from .engine import (
    Action,
    ActionContext,
    ActionFailedError,
    BaseAction,
    FuncAction,
    RunOptions,
    RunResult,
    Stage,
    StageFailedError,
    Status,
    Workflow,
    WorkflowError,
    format_results,
    run_workflow,
    run_workflows,
)
from .store import Metadata, MergeStrategy, Store, new_metadata

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionContext",
    "ActionFailedError",
    "BaseAction",
    "EngineConfig",
    "FuncAction",
    "MergeStrategy",
    "Metadata",
    "RunOptions",
    "RunResult",
    "Stage",
    "StageFailedError",
    "Status",
    "Store",
    "Workflow",
    "WorkflowError",
    "format_results",
    "get_config",
    "new_metadata",
    "reset_config",
    "run_workflow",
    "run_workflows",
]
