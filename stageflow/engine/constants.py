"""Store key prefixes, standard tags, property keys and status values."""
from __future__ import annotations

from enum import Enum

# Key prefixes
PREFIX_WORKFLOW = "workflow:"
PREFIX_STAGE = "stage:"
PREFIX_ACTION = "action:"
PREFIX_CONFIG = "config:"
PREFIX_DATA = "data:"
PREFIX_TEMP = "temp:"

# Standard tags
TAG_SYSTEM = "system"
TAG_CORE = "core"
TAG_DYNAMIC = "dynamic"
TAG_DISABLED = "disabled"
TAG_TEMPORARY = "temporary"

# Metadata property keys
PROP_STATUS = "status"
PROP_ORDER = "order"
PROP_CREATED_BY = "createdBy"
PROP_DEPENDENCIES = "dependencies"
PROP_TYPE = "type"

# Workflow context slots
CTX_DISABLED_STAGES = "disabledStages"
CTX_DISABLED_ACTIONS = "disabledActions"
CTX_DYNAMIC_STAGES = "dynamicStages"


class Status(str, Enum):
    """Lifecycle status recorded under the ``status`` property."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


def workflow_key(workflow_id: str) -> str:
    return f"{PREFIX_WORKFLOW}{workflow_id}"


def stage_key(stage_id: str) -> str:
    return f"{PREFIX_STAGE}{stage_id}"


def action_key(stage_id: str, action_name: str) -> str:
    return f"{PREFIX_ACTION}{stage_id}:{action_name}"
