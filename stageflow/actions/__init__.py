"""Reusable actions: wrappers and common building blocks."""
from .common import AppendValueAction, PutValueAction, WaitAction
from .wrappers import CompositeAction, LoggingAction, RetryAction, TimingAction

__all__ = [
    "AppendValueAction",
    "CompositeAction",
    "LoggingAction",
    "PutValueAction",
    "RetryAction",
    "TimingAction",
    "WaitAction",
]
