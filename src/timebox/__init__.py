"""
Timebox — cooperative deadlines for nested units of work.

Public API surface (v1):

    Budgets:      Budget, BudgetStack, current, start, stop, clear_all
    Scopes:       scope, wrap
    Checkpoints:  checkpoint
    SQL:          inject
    Utilities:    configure, disable, enable, disabled
    Clocks:       Clock, MonotonicClock, WallClock, ManualClock
    Errors:       TimeboxError, BudgetExceeded, InvalidCheckpointName
    Trace:        ExceededRecord, all_records, clear_traces
"""

from __future__ import annotations

from typing import Any, Callable, ContextManager, TypeVar

from .budget import Budget
from .clock import Clock, ManualClock, MonotonicClock, WallClock
from .exceptions import BudgetExceeded, InvalidCheckpointName, TimeboxError
from .scope import BudgetStack, default_stack
from .sql import inject
from .trace import ExceededRecord, all_records, clear as clear_traces
from ._config import configure, disable, disabled, enable
from . import exporters

R = TypeVar("R")


def current() -> Budget | None:
    """Get the current Budget for this thread or task, if one is set."""
    return default_stack.current()


def start(allowed_seconds: float, *, only: Any = None, exclude: Any = None) -> Budget:
    """
    Push a new Budget onto this context's stack and return it.

    If a Budget is already active, the new one gets the minimum of
    `allowed_seconds` and the active Budget's remaining time.
    """
    return default_stack.start(allowed_seconds, only=only, exclude=exclude)


def stop(budget: Budget | None = None) -> Budget | None:
    """
    Remove the top Budget from this context's stack.

    If `budget` is given, the top is only removed when it is that instance.
    Returns `budget` as passed.
    """
    return default_stack.stop(budget)


def clear_all() -> None:
    """Clear the entire stack for this context."""
    default_stack.clear_all()


def scope(
    allowed_seconds: float, *, only: Any = None, exclude: Any = None
) -> ContextManager[Budget]:
    """
    Context manager form of start/stop.

        with timebox.scope(3.0):
            timebox.checkpoint()

    Safer than calling start and stop by hand: the Budget is always stopped,
    including when the block raises.
    """
    return default_stack.scope(allowed_seconds, only=only, exclude=exclude)


def wrap(
    allowed_seconds: float,
    body: Callable[[Budget], R],
    *,
    only: Any = None,
    exclude: Any = None,
) -> R:
    """Call `body(budget)` inside a new Budget and return what it returns."""
    return default_stack.wrap(allowed_seconds, body, only=only, exclude=exclude)


def checkpoint(name: Any = None) -> None:
    """
    Raise BudgetExceeded if there is an active, expired Budget.

    Does nothing if no Budget is active, or if the active Budget filters
    `name` out with its `only`/`exclude` options.
    """
    default_stack.checkpoint(name)


__all__ = [
    # Budgets
    "Budget",
    "BudgetStack",
    "current",
    "start",
    "stop",
    "clear_all",
    # Scopes
    "scope",
    "wrap",
    # Checkpoints
    "checkpoint",
    # SQL
    "inject",
    # Configuration
    "configure",
    "disable",
    "enable",
    "disabled",
    # Clocks
    "Clock",
    "MonotonicClock",
    "WallClock",
    "ManualClock",
    # Trace
    "ExceededRecord",
    "all_records",
    "clear_traces",
    # Errors
    "TimeboxError",
    "BudgetExceeded",
    "InvalidCheckpointName",
    # Exporters
    "exporters",
]
