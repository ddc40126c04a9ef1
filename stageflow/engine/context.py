"""Per-invocation facade handed to ``Action.execute``.

Introspection methods are pure queries over the workflow plan. Enable and
disable calls update the shared disabled sets immediately; dynamic actions and
stages are queued here and spliced into the plan by the engine once the
current action returns.
"""
from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Set, Tuple

from .action import Action, ActionState, StageState, has_all_tags, has_any_tag, has_tag, type_of
from .constants import CTX_DYNAMIC_STAGES
from .errors import StageNotFoundError
from .logger import Logger, NullLogger

if TYPE_CHECKING:
    from ..store import Store
    from .stage import Stage
    from .workflow import Workflow


class ActionContext:
    """Context passed to every action.

    Attributes:
        cancel_token: ``threading.Event`` set when the run should stop
        workflow: Owning workflow
        stage: Stage currently executing
        action: Action currently executing
        store: The workflow store
        logger: Engine logger
        dynamic_actions: Actions queued to run right after the current one
        dynamic_stages: Stages queued to run right after the current stage
        disabled_actions: Names of actions to skip
        disabled_stages: Ids of stages to skip
    """

    def __init__(
        self,
        workflow: "Workflow",
        stage: Optional["Stage"] = None,
        store: Optional["Store"] = None,
        logger: Optional[Logger] = None,
        cancel_token: Optional[threading.Event] = None,
        disabled_actions: Optional[Set[str]] = None,
        disabled_stages: Optional[Set[str]] = None,
    ):
        self.workflow = workflow
        self.stage = stage
        self.action: Optional[Action] = None
        self.store = store if store is not None else workflow.store
        self.logger = logger or NullLogger()
        self.cancel_token = cancel_token or threading.Event()
        self.dynamic_actions: List[Action] = []
        self.dynamic_stages: List["Stage"] = []
        self.disabled_actions: Set[str] = disabled_actions if disabled_actions is not None else set()
        self.disabled_stages: Set[str] = disabled_stages if disabled_stages is not None else set()

    def is_cancelled(self) -> bool:
        return self.cancel_token.is_set()

    # ------------------------------------------------------------ introspection

    def list_all_stages(self) -> List["Stage"]:
        return list(self.workflow.stages)

    def list_all_actions(self) -> List[Action]:
        return [action for stage in self.workflow.stages for action in stage.actions]

    def list_all_stage_actions(self, stage_id: str) -> List[Action]:
        """Return the actions of a stage; empty for an unknown stage id."""
        stage = self.find_stage(stage_id)
        if stage is None:
            return []
        return list(stage.actions)

    def find_stage(self, stage_id: str) -> Optional["Stage"]:
        """First stage with the given id, or None."""
        for stage in self.workflow.stages:
            if stage.id == stage_id:
                return stage
        return None

    def find_action(self, name: str) -> Tuple[Optional[Action], Optional["Stage"]]:
        """First action with the given name and its stage, or ``(None, None)``."""
        for stage in self.workflow.stages:
            for action in stage.actions:
                if action.name == name:
                    return action, stage
        return None, None

    def find_action_in_stage(self, stage_id: str, name: str) -> Optional[Action]:
        stage = self.find_stage(stage_id)
        if stage is None:
            return None
        for action in stage.actions:
            if action.name == name:
                return action
        return None

    def filter_stages(self, predicate: Callable[["Stage"], bool]) -> List["Stage"]:
        return [stage for stage in self.workflow.stages if predicate(stage)]

    def filter_actions(self, predicate: Callable[[Action], bool]) -> List[Action]:
        return [action for action in self.list_all_actions() if predicate(action)]

    def find_stages_by_tag(self, tag: str) -> List["Stage"]:
        return self.filter_stages(lambda s: s.has_tag(tag))

    def find_stages_by_all_tags(self, tags: Iterable[str]) -> List["Stage"]:
        tags = list(tags)
        return self.filter_stages(lambda s: s.has_all_tags(tags))

    def find_stages_by_any_tag(self, tags: Iterable[str]) -> List["Stage"]:
        tags = list(tags)
        return self.filter_stages(lambda s: s.has_any_tag(tags))

    def find_stages_by_name(self, substring: str) -> List["Stage"]:
        """Stages whose name contains ``substring`` (case-sensitive)."""
        return self.filter_stages(lambda s: substring in s.name)

    def find_stages_by_exact_name(self, name: str) -> List["Stage"]:
        return self.filter_stages(lambda s: s.name == name)

    def find_stages_by_description(self, substring: str) -> List["Stage"]:
        """Stages whose description contains ``substring`` (case-sensitive)."""
        return self.filter_stages(lambda s: substring in s.description)

    def find_actions_by_tag(self, tag: str) -> List[Action]:
        return self.filter_actions(lambda a: has_tag(a, tag))

    def find_actions_by_tags(self, tags: Iterable[str]) -> List[Action]:
        """Actions carrying every tag in ``tags``."""
        tags = list(tags)
        return self.filter_actions(lambda a: has_all_tags(a, tags))

    def find_actions_by_any_tag(self, tags: Iterable[str]) -> List[Action]:
        tags = list(tags)
        return self.filter_actions(lambda a: has_any_tag(a, tags))

    def find_actions_by_name(self, substring: str) -> List[Action]:
        """Actions whose name contains ``substring`` (case-sensitive)."""
        return self.filter_actions(lambda a: substring in a.name)

    def find_actions_by_exact_name(self, name: str) -> List[Action]:
        return self.filter_actions(lambda a: a.name == name)

    def find_actions_by_description(self, substring: str) -> List[Action]:
        """Actions whose description contains ``substring`` (case-sensitive)."""
        return self.filter_actions(lambda a: substring in a.description)

    def find_actions_by_type(self, exemplar) -> List[Action]:
        """Actions that are instances of the exemplar's class.

        Args:
            exemplar: An instance of the target class, or the class itself
        """
        cls = type_of(exemplar)
        return self.filter_actions(lambda a: isinstance(a, cls))

    def get_stage_states(self) -> List[StageState]:
        return [
            StageState(stage=stage, enabled=stage.id not in self.disabled_stages)
            for stage in self.workflow.stages
        ]

    def get_action_states(self, stage_id: str) -> List[ActionState]:
        """Pair each action of a stage with its enabled flag; empty for an unknown stage."""
        return [
            ActionState(action=action, enabled=action.name not in self.disabled_actions)
            for action in self.list_all_stage_actions(stage_id)
        ]

    # ---------------------------------------------------------- enable/disable

    def enable_action(self, name: str) -> None:
        self.disabled_actions.discard(name)

    def disable_action(self, name: str) -> None:
        self.disabled_actions.add(name)

    def is_action_enabled(self, name: str) -> bool:
        return name not in self.disabled_actions

    def enable_stage(self, stage_id: str) -> None:
        self.disabled_stages.discard(stage_id)

    def disable_stage(self, stage_id: str) -> None:
        self.disabled_stages.add(stage_id)

    def is_stage_enabled(self, stage_id: str) -> bool:
        return stage_id not in self.disabled_stages

    def _disable_actions(self, actions: List[Action]) -> int:
        for action in actions:
            self.disabled_actions.add(action.name)
        return len(actions)

    def _enable_actions(self, actions: List[Action]) -> int:
        count = 0
        for action in actions:
            if action.name in self.disabled_actions:
                self.disabled_actions.discard(action.name)
                count += 1
        return count

    def disable_actions_by_tag(self, tag: str) -> int:
        """Disable every action carrying ``tag``.

        Returns:
            Number of matching actions
        """
        return self._disable_actions(self.find_actions_by_tag(tag))

    def enable_actions_by_tag(self, tag: str) -> int:
        """Re-enable actions carrying ``tag``.

        Returns:
            Number of actions that were disabled and are now enabled
        """
        return self._enable_actions(self.find_actions_by_tag(tag))

    def disable_actions_by_type(self, exemplar) -> int:
        return self._disable_actions(self.find_actions_by_type(exemplar))

    def enable_actions_by_type(self, exemplar) -> int:
        return self._enable_actions(self.find_actions_by_type(exemplar))

    def disable_stages_by_tag(self, tag: str) -> int:
        stages = self.find_stages_by_tag(tag)
        for stage in stages:
            self.disabled_stages.add(stage.id)
        return len(stages)

    def enable_stages_by_tag(self, tag: str) -> int:
        count = 0
        for stage in self.find_stages_by_tag(tag):
            if stage.id in self.disabled_stages:
                self.disabled_stages.discard(stage.id)
                count += 1
        return count

    # ---------------------------------------------------------- plan mutation

    def add_dynamic_action(self, action: Action) -> None:
        """Queue ``action`` to run right after the current action."""
        self.dynamic_actions.append(action)

    def add_dynamic_stage(self, stage: "Stage") -> None:
        """Queue ``stage`` to run right after the current stage."""
        self.dynamic_stages.append(stage)

    def add_action_to_stage(self, stage_id: str, action: Action) -> None:
        """Append an action to a stage directly.

        Raises:
            StageNotFoundError: If no stage has that id
        """
        stage = self.find_stage(stage_id)
        if stage is None:
            raise StageNotFoundError(stage_id)
        stage.add_action(action)

    def remove_action(self, name: str) -> bool:
        """Remove the first action named ``name`` from any stage."""
        for stage in self.workflow.stages:
            for i, action in enumerate(stage.actions):
                if action.name == name:
                    del stage.actions[i]
                    return True
        return False

    def _remove_actions_where(self, predicate: Callable[[Action], bool]) -> int:
        removed = 0
        for stage in self.workflow.stages:
            kept = [action for action in stage.actions if not predicate(action)]
            removed += len(stage.actions) - len(kept)
            stage.actions[:] = kept
        return removed

    def remove_actions_by_tag(self, tag: str) -> int:
        return self._remove_actions_where(lambda a: has_tag(a, tag))

    def remove_actions_by_type(self, exemplar) -> int:
        cls = type_of(exemplar)
        return self._remove_actions_where(lambda a: isinstance(a, cls))

    def remove_stage(self, stage_id: str) -> bool:
        """Remove a stage from the plan or from the pending dynamic queues.

        Returns:
            True if a stage was removed
        """
        for i, stage in enumerate(self.workflow.stages):
            if stage.id == stage_id:
                del self.workflow.stages[i]
                return True

        for i, stage in enumerate(self.dynamic_stages):
            if stage.id == stage_id:
                del self.dynamic_stages[i]
                return True

        pending = self.workflow.context.get(CTX_DYNAMIC_STAGES) or []
        for i, stage in enumerate(pending):
            if stage.id == stage_id:
                del pending[i]
                return True
        return False


def context_set(slots: dict, key: str) -> Set[str]:
    """Return the set stored in a workflow context slot, creating it if absent."""
    value = slots.get(key)
    if not isinstance(value, set):
        value = set(value or ())
        slots[key] = value
    return value
