"""Actions that wrap other actions to add timing, logging, retries or grouping.

A wrapper keeps the wrapped action's name so enable/disable by name and the
``action:<stage>:<name>`` status entry still refer to the same unit of work.
"""
from __future__ import annotations

import time
from typing import Iterable, List, Optional

from ..engine.action import Action, BaseAction
from ..engine.context import ActionContext
from ..utils.retry import RetryConfig, RetryExhaustedError

TIMING_PREFIX = "timing."


class TimingAction(BaseAction):
    """Times the wrapped action and stores the duration in seconds.

    The duration is written to ``timing.<name>`` whether or not the wrapped
    action succeeded.
    """

    def __init__(self, wrapped: Action):
        super().__init__(wrapped.name, f"Timed: {wrapped.description}", wrapped.tags)
        self.wrapped = wrapped

    @property
    def timing_key(self) -> str:
        return f"{TIMING_PREFIX}{self.wrapped.name}"

    def execute(self, ctx: ActionContext) -> None:
        ctx.logger.info("Starting timed execution of %s", self.wrapped.name)
        start = time.perf_counter()
        try:
            self.wrapped.execute(ctx)
        finally:
            elapsed = time.perf_counter() - start
            ctx.logger.info("Completed %s in %.3fs", self.wrapped.name, elapsed)
            ctx.store.put(self.timing_key, elapsed)


class LoggingAction(BaseAction):
    """Logs the wrapped action's start, details and outcome."""

    def __init__(self, wrapped: Action, label: str = "INFO"):
        super().__init__(wrapped.name, f"Logged: {wrapped.description}", wrapped.tags)
        self.wrapped = wrapped
        self.label = label

    def execute(self, ctx: ActionContext) -> None:
        ctx.logger.info("[%s] Executing action: %s", self.label, self.wrapped.name)
        ctx.logger.info("[%s] Description: %s", self.label, self.wrapped.description)
        ctx.logger.info("[%s] Tags: %s", self.label, self.wrapped.tags)
        try:
            self.wrapped.execute(ctx)
        except Exception as e:
            ctx.logger.error("[%s] Action %s failed: %s", self.label, self.wrapped.name, e)
            raise
        ctx.logger.info("[%s] Action %s completed successfully", self.label, self.wrapped.name)


class RetryAction(BaseAction):
    """Re-runs the wrapped action with exponential backoff.

    Delays wait on the cancellation token, so a cancelled run stops retrying
    at once. Exceptions outside ``config.retriable_exceptions`` propagate
    unchanged on first occurrence.
    """

    def __init__(self, wrapped: Action, config: Optional[RetryConfig] = None):
        super().__init__(wrapped.name, f"Retry: {wrapped.description}", wrapped.tags)
        self.wrapped = wrapped
        self.config = config or RetryConfig.from_engine_config()

    def execute(self, ctx: ActionContext) -> None:
        """Run the wrapped action until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: If every attempt failed or cancellation cut
                the retries short
        """
        max_attempts = self.config.max_attempts
        last_error: Optional[Exception] = None
        total_delay = 0.0
        attempts = 0

        for attempt in range(max_attempts):
            delay = self.config.calculate_backoff_delay(attempt)
            if delay > 0:
                ctx.logger.info("Waiting %.2fs before retry...", delay)
                total_delay += delay
                if ctx.cancel_token.wait(delay):
                    ctx.logger.warning("Retries of %s cancelled", self.wrapped.name)
                    break

            attempts += 1
            ctx.logger.info("Attempt %d/%d for action %s", attempt + 1, max_attempts, self.wrapped.name)
            try:
                self.wrapped.execute(ctx)
            except Exception as e:
                if not self.config.is_retriable(e):
                    raise
                last_error = e
                ctx.logger.warning(
                    "Attempt %d failed for action %s: %s", attempt + 1, self.wrapped.name, e
                )
                continue

            ctx.logger.info("Action %s succeeded on attempt %d", self.wrapped.name, attempt + 1)
            return

        ctx.logger.error("All %d attempts failed for action %s", attempts, self.wrapped.name)
        raise RetryExhaustedError(attempts, last_error, total_delay) from last_error


class CompositeAction(BaseAction):
    """Runs sub-actions in order as one action; the first failure stops it."""

    def __init__(
        self,
        name: str,
        description: str = "",
        actions: Optional[Iterable[Action]] = None,
        tags: Optional[Iterable[str]] = None,
    ):
        super().__init__(name, description, tags)
        self.actions: List[Action] = list(actions or ())

    def add(self, action: Action) -> None:
        self.actions.append(action)

    def execute(self, ctx: ActionContext) -> None:
        total = len(self.actions)
        ctx.logger.info("Executing composite action %s with %d sub-actions", self.name, total)
        for i, action in enumerate(self.actions, start=1):
            ctx.logger.info("Executing sub-action %d/%d: %s", i, total, action.name)
            try:
                action.execute(ctx)
            except Exception as e:
                ctx.logger.error("Sub-action %s failed: %s", action.name, e)
                raise RuntimeError(f"sub-action {i} ({action.name}) failed: {e}") from e
        ctx.logger.info("All sub-actions completed successfully")
