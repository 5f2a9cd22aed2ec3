"""Job runner middleware: apply a Budget declared in the job payload."""

from __future__ import annotations

from typing import Any, Callable, Mapping, TypeVar

from ..scope import BudgetStack, default_stack

R = TypeVar("R")


class JobMiddleware:
    """
    Wraps job execution in a Budget when the job payload declares one.

        middleware = JobMiddleware()
        middleware({"class": "SyncUsers", "timebox": 6.0}, worker.perform)

    Jobs without the key (or with it set to None) run with no Budget.
    """

    def __init__(self, key: str = "timebox", *, stack: BudgetStack | None = None) -> None:
        self.key = key
        self._stack = stack if stack is not None else default_stack

    def allowed_seconds(self, job: Mapping[str, Any]) -> float | None:
        seconds = job.get(self.key)
        return None if seconds is None else float(seconds)

    def __call__(self, job: Mapping[str, Any], perform: Callable[[], R]) -> R:
        seconds = self.allowed_seconds(job)
        if seconds is None:
            return perform()
        return self._stack.wrap(seconds, lambda _budget: perform())
