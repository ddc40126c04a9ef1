"""Workflows: ordered stages sharing one store, and the top-level driver."""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..config import get_config
from ..store import KeyExpiredError, KeyNotFoundError, Store, TypeMismatchError, new_metadata
from .action import Action
from .constants import (
    CTX_DISABLED_STAGES,
    CTX_DYNAMIC_STAGES,
    PREFIX_STAGE,
    PREFIX_WORKFLOW,
    PROP_CREATED_BY,
    PROP_ORDER,
    PROP_STATUS,
    TAG_DISABLED,
    TAG_DYNAMIC,
    TAG_SYSTEM,
    Status,
    action_key,
    stage_key,
    workflow_key,
)
from .context import context_set
from .errors import (
    ActionNotFoundError,
    EmptyWorkflowError,
    StageFailedError,
    StageNotFoundError,
    WorkflowCancelledError,
)
from .logger import Logger, NullLogger
from .stage import Stage, StageInfo, mark_status, resume_index


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowInfo(BaseModel):
    """Serialisable description of a workflow kept under ``workflow:<id>``."""

    id: str
    name: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    stage_ids: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Workflow:
    """A sequence of stages run as one unit over a shared store.

    Statuses of the workflow, its stages and their actions are recorded as
    the ``status`` property of their store entries (``workflow:<id>``,
    ``stage:<id>``, ``action:<stage>:<name>``).

    Attributes:
        id: Identifier
        name: Display name
        description: Free-form description
        tags: Unique tags
        store: Workflow-wide store
        stages: Stages in execution order
        context: Free-form slots; the engine keeps disabled sets and queued
            dynamic stages here
        check_cancellation: Stop between actions once the cancellation token is set
    """

    def __init__(
        self,
        id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
        check_cancellation: Optional[bool] = None,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.tags: List[str] = []
        for tag in tags or ():
            if tag not in self.tags:
                self.tags.append(tag)
        self.store = Store()
        self.stages: List[Stage] = []
        self.context: Dict[str, Any] = {}
        if check_cancellation is None:
            check_cancellation = get_config().check_cancellation
        self.check_cancellation = check_cancellation
        self._created_at = _utcnow()
        self._save_to_store()

    def __repr__(self) -> str:
        return f"Workflow(id={self.id!r}, stages={[s.id for s in self.stages]!r})"

    def _save_to_store(self) -> None:
        info = WorkflowInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            stage_ids=[stage.id for stage in self.stages],
            created_at=self._created_at,
            updated_at=_utcnow(),
        )
        key = workflow_key(self.id)
        if self.store.exists(key):
            # Keep status and other properties already recorded
            self.store.put(key, info)
            meta = self.store.get_metadata(key)
            for tag in [*self.tags, TAG_SYSTEM]:
                meta.add_tag(tag)
            meta.description = self.description
            return

        meta = new_metadata(tags=[*self.tags, TAG_SYSTEM], description=self.description)
        self.store.put_with_metadata(key, info, meta)

    # -------------------------------------------------------------------- tags

    def add_tag(self, tag: str) -> None:
        if tag in self.tags:
            return
        self.tags.append(tag)
        self._save_to_store()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_all_tags(self, tags: Iterable[str]) -> bool:
        return all(tag in self.tags for tag in tags)

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    # ------------------------------------------------------------------ stages

    def _record_stage(self, stage: Stage, order: int, created_by: str) -> None:
        meta = new_metadata(
            tags=stage.tags,
            description=stage.description,
            properties={
                PROP_ORDER: order,
                PROP_STATUS: Status.PENDING.value,
                PROP_CREATED_BY: created_by,
            },
        )
        self.store.put_with_metadata(stage_key(stage.id), stage.to_info(), meta)
        stage.register_actions(self.store)

    def add_stage(self, stage: Stage) -> None:
        """Append a stage and record it in the store as pending."""
        self.stages.append(stage)
        self._record_stage(stage, len(self.stages) - 1, f"{PREFIX_WORKFLOW}{self.id}")
        self._save_to_store()

    def get_stage(self, stage_id: str) -> Stage:
        """Look a stage up in the plan, falling back to its stored description.

        A stage rebuilt from the store carries no actions.

        Raises:
            StageNotFoundError: If neither the plan nor the store knows the id
        """
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        try:
            info = self.store.get(stage_key(stage_id), StageInfo)
        except (KeyNotFoundError, KeyExpiredError, TypeMismatchError) as e:
            raise StageNotFoundError(stage_id) from e
        return Stage(info.id, info.name, info.description, tags=info.tags)

    def get_action(self, stage_id: str, name: str) -> Action:
        """Return the named action of a stage.

        Raises:
            ActionNotFoundError: If the action is unknown to the store or the stage
            StageNotFoundError: If the stage cannot be found
        """
        if not self.store.exists(action_key(stage_id, name)):
            raise ActionNotFoundError(stage_id, name)
        for action in self.get_stage(stage_id).actions:
            if action.name == name:
                return action
        raise ActionNotFoundError(stage_id, name)

    def get_context(self, key: str, default: Any = None) -> Any:
        return self.context.get(key, default)

    def set_context(self, key: str, value: Any) -> None:
        self.context[key] = value

    # ---------------------------------------------------------- enable/disable

    def enable_all_stages(self) -> None:
        context_set(self.context, CTX_DISABLED_STAGES).clear()
        for stage in self.stages:
            key = stage_key(stage.id)
            if self.store.exists(key):
                self.store.remove_tag(key, TAG_DISABLED)

    def disable_stage(self, stage_id: str) -> None:
        context_set(self.context, CTX_DISABLED_STAGES).add(stage_id)
        key = stage_key(stage_id)
        if self.store.exists(key):
            self.store.add_tag(key, TAG_DISABLED)

    def enable_stage(self, stage_id: str) -> None:
        context_set(self.context, CTX_DISABLED_STAGES).discard(stage_id)
        key = stage_key(stage_id)
        if self.store.exists(key):
            self.store.remove_tag(key, TAG_DISABLED)

    def is_stage_enabled(self, stage_id: str) -> bool:
        return stage_id not in context_set(self.context, CTX_DISABLED_STAGES)

    def _stages_for_keys(self, keys: List[str]) -> List[Stage]:
        stages = []
        for key in keys:
            if not key.startswith(PREFIX_STAGE) or len(key) == len(PREFIX_STAGE):
                continue
            try:
                stages.append(self.get_stage(key[len(PREFIX_STAGE):]))
            except StageNotFoundError:
                continue
        return stages

    def list_stages_by_tag(self, tag: str) -> List[Stage]:
        """Stages whose store entry carries ``tag``."""
        return self._stages_for_keys(self.store.find_keys_by_tag(tag))

    def list_stages_by_status(self, status) -> List[Stage]:
        """Stages whose store entry has the given status."""
        return self._stages_for_keys(self.store.find_keys_by_property(PROP_STATUS, str(status)))

    # --------------------------------------------------------------- execution

    def _set_status(self, key: str, status: Status) -> None:
        mark_status(self.store, key, status)

    def _insert_dynamic_stages(self, index: int, parent: Stage, logger: Logger) -> None:
        queued = self.context.pop(CTX_DYNAMIC_STAGES, None)
        if not queued:
            return
        logger.debug("Found %d dynamic stages to insert after stage %s", len(queued), parent.id)
        for offset, stage in enumerate(queued, start=1):
            stage.add_tag(TAG_DYNAMIC)
            self._record_stage(stage, index + offset, f"{PREFIX_STAGE}{parent.id}")
        self.stages[index + 1:index + 1] = queued
        self._save_to_store()

    def execute(
        self,
        cancel_token: Optional[threading.Event] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """Run every stage in order.

        Disabled stages are skipped. Stages queued by actions run right after
        the stage whose action queued them.

        Args:
            cancel_token: Event handed to every action
            logger: Engine logger

        Raises:
            EmptyWorkflowError: If the workflow has no stages
            StageFailedError: If a stage failed or was cancelled; the workflow
                stops there and earlier store mutations are kept
        """
        if not self.stages:
            raise EmptyWorkflowError(self.id)

        logger = logger or NullLogger()
        cancel_token = cancel_token or threading.Event()

        logger.info("Starting workflow: %s (%s)", self.name, self.id)
        wf_key = workflow_key(self.id)
        if not self.store.exists(wf_key):
            self._save_to_store()
        self._set_status(wf_key, Status.RUNNING)

        for order, stage in enumerate(self.stages):
            if not self.store.exists(stage_key(stage.id)):
                self._record_stage(stage, order, f"{PREFIX_WORKFLOW}{self.id}")
            else:
                stage.register_actions(self.store)

        i = 0
        while i < len(self.stages):
            stage = self.stages[i]
            key = stage_key(stage.id)
            if not self.store.exists(key):
                self._record_stage(stage, i, f"{PREFIX_WORKFLOW}{self.id}")

            # Re-read each pass: a stage may replace the set
            if stage.id in context_set(self.context, CTX_DISABLED_STAGES):
                logger.info("Skipping disabled stage: %s (%s)", stage.name, stage.id)
                self._set_status(key, Status.SKIPPED)
                i += 1
                continue

            self._set_status(key, Status.RUNNING)
            logger.info("Starting stage %d/%d: %s (%s)", i + 1, len(self.stages), stage.name, stage.id)
            position = i + 1
            snapshot = list(self.stages)

            try:
                stage.execute(cancel_token, self, logger)
            except WorkflowCancelledError as e:
                self._set_status(key, Status.CANCELLED)
                self._set_status(wf_key, Status.CANCELLED)
                raise StageFailedError(stage.id, e) from e
            except Exception as e:
                self._set_status(key, Status.FAILED)
                self._set_status(wf_key, Status.FAILED)
                raise StageFailedError(stage.id, e) from e

            # Actions may have removed stages around this one
            i = resume_index(self.stages, stage, snapshot, i)
            self._insert_dynamic_stages(i, stage, logger)

            logger.info("Completed stage %d/%d: %s", position, len(self.stages), stage.name)
            self._set_status(key, Status.COMPLETED)
            i += 1

        logger.info("Workflow completed successfully: %s", self.name)
        self._set_status(wf_key, Status.COMPLETED)
