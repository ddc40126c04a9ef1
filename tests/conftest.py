"""Global pytest fixtures and configuration.

Provides:
- Isolation of ``STAGEFLOW_*`` environment settings and the config singleton
- A controllable clock for TTL tests
- Builders for simple recording actions
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest

from stageflow.config import reset_config
from stageflow.engine import ActionContext, FuncAction
from stageflow.store import Store, kvstore


@pytest.fixture(autouse=True)
def clean_engine_env(monkeypatch):
    """Drop STAGEFLOW_* variables and the cached config around every test."""
    for key in list(os.environ):
        if key.startswith("STAGEFLOW_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


class FakeClock:
    """Stand-in for the store's UTC clock."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """Freeze the store clock; advance it with ``clock.advance(seconds)``."""
    fake = FakeClock()
    monkeypatch.setattr(kvstore, "_utcnow", fake)
    return fake


@pytest.fixture
def store() -> Store:
    return Store()


@pytest.fixture
def trace_action() -> Callable[..., FuncAction]:
    """Factory for actions that append their name to the ``trace`` list.

    Args passed to the factory:
        name: Action name
        error: Exception to raise after recording
        then: Callback run with the context after recording
        tags: Action tags
    """

    def make(
        name: str,
        error: Optional[Exception] = None,
        then: Optional[Callable[[ActionContext], None]] = None,
        tags: Optional[List[str]] = None,
        description: str = "",
    ) -> FuncAction:
        def body(ctx: ActionContext) -> None:
            trace = ctx.store.get_or_default("trace", list, [])
            trace.append(name)
            ctx.store.put("trace", trace)
            if then is not None:
                then(ctx)
            if error is not None:
                raise error

        return FuncAction(name, body, description=description or f"{name} action", tags=tags)

    return make
