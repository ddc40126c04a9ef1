"""General-purpose actions."""
from __future__ import annotations

from typing import Any, Iterable, Optional

from ..engine.action import BaseAction
from ..engine.context import ActionContext
from ..store.kvstore import TTL


class WaitAction(BaseAction):
    """Sleeps for a number of seconds, returning early on cancellation."""

    def __init__(self, seconds: float, name: str = "wait", tags: Optional[Iterable[str]] = None):
        super().__init__(name, f"Waits for {seconds} seconds", tags)
        self.seconds = seconds

    def execute(self, ctx: ActionContext) -> None:
        ctx.logger.info("Waiting for %s seconds", self.seconds)
        if ctx.cancel_token.wait(self.seconds):
            ctx.logger.debug("Wait interrupted by cancellation")


class PutValueAction(BaseAction):
    """Writes a fixed value to the workflow store."""

    def __init__(
        self,
        key: str,
        value: Any,
        ttl: TTL = None,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ):
        super().__init__(name or f"put-{key}", f"Stores a value under {key}", tags)
        self.key = key
        self.value = value
        self.ttl = ttl

    def execute(self, ctx: ActionContext) -> None:
        if self.ttl is None:
            ctx.store.put(self.key, self.value)
        else:
            ctx.store.put_with_ttl(self.key, self.value, self.ttl)


class AppendValueAction(BaseAction):
    """Appends a value to a list in the store, creating the list if absent.

    Args:
        key: Store key of the list
        value: Item to append
        unique: Skip the append when the item is already present
    """

    def __init__(
        self,
        key: str,
        value: Any,
        unique: bool = False,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ):
        super().__init__(name or f"append-{key}", f"Appends a value to {key}", tags)
        self.key = key
        self.value = value
        self.unique = unique

    def execute(self, ctx: ActionContext) -> None:
        items = ctx.store.get_or_default(self.key, list, [])
        if self.unique and self.value in items:
            return
        items.append(self.value)
        ctx.store.put(self.key, items)
