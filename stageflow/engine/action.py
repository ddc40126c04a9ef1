"""The action contract and its convenience implementations."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional

if TYPE_CHECKING:
    from .context import ActionContext
    from .stage import Stage


class Action(ABC):
    """A unit of work run by a stage.

    Names need not be unique: enable, disable and find operations by name
    apply to every action carrying that name. ``execute`` signals failure by
    raising; returning normally is success.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def tags(self) -> List[str]: ...

    @abstractmethod
    def execute(self, ctx: "ActionContext") -> None:
        """Run the action.

        Args:
            ctx: Per-invocation context bound to the running workflow and stage

        Raises:
            Exception: Any error fails the action and stops its stage
        """


class BaseAction(Action):
    """Stores name, description and tags for subclasses.

    Subclasses only implement ``execute``.
    """

    def __init__(self, name: str, description: str = "", tags: Optional[Iterable[str]] = None):
        self._name = name
        self._description = description
        self._tags: List[str] = []
        for tag in tags or ():
            self.add_tag(tag)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, tags={self._tags!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def tags(self) -> List[str]:
        return list(self._tags)

    def add_tag(self, tag: str) -> None:
        if tag not in self._tags:
            self._tags.append(tag)

    def has_tag(self, tag: str) -> bool:
        return tag in self._tags


class FuncAction(BaseAction):
    """Action whose body is a plain callable receiving the context."""

    def __init__(
        self,
        name: str,
        func: Callable[["ActionContext"], Any],
        description: str = "",
        tags: Optional[Iterable[str]] = None,
    ):
        super().__init__(name, description, tags)
        self._func = func

    def execute(self, ctx: "ActionContext") -> None:
        self._func(ctx)


@dataclass
class ActionState:
    """An action paired with whether it is currently enabled."""

    action: Action
    enabled: bool


@dataclass
class StageState:
    """A stage paired with whether it is currently enabled."""

    stage: "Stage"
    enabled: bool


def has_tag(action: Action, tag: str) -> bool:
    return tag in action.tags


def has_all_tags(action: Action, tags: Iterable[str]) -> bool:
    own = action.tags
    return all(tag in own for tag in tags)


def has_any_tag(action: Action, tags: Iterable[str]) -> bool:
    own = action.tags
    return any(tag in own for tag in tags)


def type_of(exemplar: Any) -> type:
    """Class to match for by-type queries: the exemplar itself if it is a class."""
    return exemplar if isinstance(exemplar, type) else type(exemplar)
