"""Stages: ordered lists of actions sharing a workflow store."""
from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..store import MergeStrategy, Store, new_metadata
from .action import Action
from .constants import (
    CTX_DISABLED_ACTIONS,
    CTX_DISABLED_STAGES,
    CTX_DYNAMIC_STAGES,
    PREFIX_ACTION,
    PREFIX_STAGE,
    PROP_CREATED_BY,
    PROP_STATUS,
    TAG_DYNAMIC,
    Status,
    action_key,
)
from .context import ActionContext, context_set
from .errors import ActionFailedError, WorkflowCancelledError
from .logger import Logger, NullLogger

if TYPE_CHECKING:
    from .workflow import Workflow


def resume_index(items: List, current, snapshot: List, index: int) -> int:
    """Position of ``current`` in ``items`` after user code may have edited the list.

    ``snapshot`` is the list as it was when ``current`` started at ``index``.
    If ``current`` is gone, returns the slot just before the first surviving
    item that followed it, so the caller's ``i + 1`` lands there.
    """
    if index < len(items) and items[index] is current:
        return index
    for j, item in enumerate(items):
        if item is current:
            return j
    alive = {id(item) for item in items}
    return sum(1 for item in snapshot[:index] if id(item) in alive) - 1


def mark_status(store: Store, key: str, status: Status) -> None:
    """Record an engine status; entries removed by user code are left alone."""
    if store.exists(key):
        store.set_property(key, PROP_STATUS, status.value)


class StageInfo(BaseModel):
    """Serialisable description of a stage kept under ``stage:<id>``."""

    id: str
    name: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    action_ids: List[str] = Field(default_factory=list)


class Stage:
    """An ordered list of actions run one after the other.

    Attributes:
        id: Identifier, unique within a workflow by convention
        name: Display name
        description: Free-form description
        actions: Actions in execution order
        tags: Unique tags
        initial_store: Entries merged into the workflow store when the stage starts
    """

    def __init__(
        self,
        id: str,
        name: str,
        description: str = "",
        tags: Optional[Iterable[str]] = None,
        actions: Optional[Iterable[Action]] = None,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.actions: List[Action] = list(actions or ())
        self.tags: List[str] = []
        for tag in tags or ():
            self.add_tag(tag)
        self.initial_store = Store()

    def __repr__(self) -> str:
        return f"Stage(id={self.id!r}, actions={[a.name for a in self.actions]!r})"

    def add_action(self, action: Action) -> None:
        self.actions.append(action)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_all_tags(self, tags: Iterable[str]) -> bool:
        return all(tag in self.tags for tag in tags)

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    def to_info(self) -> StageInfo:
        return StageInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            action_ids=[action.name for action in self.actions],
        )

    def register_actions(self, store: Store) -> None:
        """Record a pending entry for each action that has none yet."""
        for action in self.actions:
            key = action_key(self.id, action.name)
            if store.exists(key):
                continue
            meta = new_metadata(
                tags=action.tags,
                description=action.description,
                properties={
                    PROP_CREATED_BY: f"{PREFIX_STAGE}{self.id}",
                    PROP_STATUS: Status.PENDING.value,
                },
            )
            store.put_with_metadata(key, action.description, meta)

    def _record_dynamic_action(self, store: Store, action: Action, parent: Action) -> None:
        meta = new_metadata(
            tags=[*action.tags, TAG_DYNAMIC],
            description=action.description,
            properties={
                PROP_CREATED_BY: f"{PREFIX_ACTION}{parent.name}",
                PROP_STATUS: Status.PENDING.value,
            },
        )
        store.put_with_metadata(action_key(self.id, action.name), action.description, meta)

    def execute(
        self,
        cancel_token: Optional[threading.Event],
        workflow: "Workflow",
        logger: Optional[Logger] = None,
    ) -> None:
        """Run the stage's actions in order.

        The initial store is merged into the workflow store first. Actions
        queued through ``ActionContext.add_dynamic_action`` are spliced in
        right after the action that queued them; queued stages are handed to
        the workflow through its ``dynamicStages`` context slot.

        Args:
            cancel_token: Event observed by actions (and by the engine when
                the workflow checks cancellation between actions)
            workflow: Owning workflow
            logger: Engine logger

        Raises:
            ActionFailedError: If an action raised; later actions do not run
            WorkflowCancelledError: If cancellation checks are on and the token is set
        """
        logger = logger or NullLogger()
        cancel_token = cancel_token or threading.Event()
        store = workflow.store

        collisions = store.merge(self.initial_store, MergeStrategy.OVERWRITE)
        if collisions:
            logger.debug("Stage store had %d key collisions with workflow store", len(collisions))

        if not self.actions:
            logger.warning("Stage '%s' has no actions to execute", self.id)
            return

        self.register_actions(store)
        ctx = ActionContext(
            workflow,
            stage=self,
            store=store,
            logger=logger,
            cancel_token=cancel_token,
            disabled_actions=context_set(workflow.context, CTX_DISABLED_ACTIONS),
            disabled_stages=context_set(workflow.context, CTX_DISABLED_STAGES),
        )

        # The list is re-read on every pass: actions may grow or shrink it.
        i = 0
        while i < len(self.actions):
            action = self.actions[i]
            key = action_key(self.id, action.name)
            if not store.exists(key):
                self.register_actions(store)

            if workflow.check_cancellation and cancel_token.is_set():
                raise WorkflowCancelledError(self.id, action.name)

            if action.name in ctx.disabled_actions:
                logger.debug("Skipping disabled action: %s", action.name)
                mark_status(store, key, Status.SKIPPED)
                i += 1
                continue

            mark_status(store, key, Status.RUNNING)
            logger.debug("Executing action %d/%d: %s", i + 1, len(self.actions), action.name)
            ctx.action = action
            position = i + 1
            snapshot = list(self.actions)

            try:
                action.execute(ctx)
            except Exception as e:
                mark_status(store, key, Status.FAILED)
                raise ActionFailedError(action.name, e) from e

            # Removals made by the action may have shifted it
            i = resume_index(self.actions, action, snapshot, i)

            if ctx.dynamic_actions:
                queued, ctx.dynamic_actions = ctx.dynamic_actions, []
                logger.debug("Action %s generated %d new actions", action.name, len(queued))
                for dynamic in queued:
                    self._record_dynamic_action(store, dynamic, action)
                self.actions[i + 1:i + 1] = queued

            if ctx.dynamic_stages:
                queued_stages, ctx.dynamic_stages = ctx.dynamic_stages, []
                logger.debug("Action %s generated %d new stages", action.name, len(queued_stages))
                pending = workflow.context.get(CTX_DYNAMIC_STAGES)
                if not isinstance(pending, list):
                    pending = []
                    workflow.context[CTX_DYNAMIC_STAGES] = pending
                pending.extend(queued_stages)

            logger.debug("Completed action %d/%d: %s", position, len(self.actions), action.name)
            mark_status(store, key, Status.COMPLETED)
            i += 1

        workflow.context[CTX_DISABLED_ACTIONS] = ctx.disabled_actions
        workflow.context[CTX_DISABLED_STAGES] = ctx.disabled_stages
