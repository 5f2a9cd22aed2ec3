"""BudgetStack — per-context stack of nested Budgets and the checkpoint protocol."""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from .budget import Budget, validate_name

logger = logging.getLogger(__name__)

R = TypeVar("R")


class BudgetStack:
    """
    Ordered Budgets for the current thread or asyncio task; the top is current.

    The stack lives in a ContextVar as an immutable tuple. Every push and pop
    rebinds the variable, so a task that inherited a copy of its creator's
    context sees a snapshot and never mutates the creator's stack. Once the
    last Budget is popped the variable goes back to None.

    The module-level functions in `timebox` operate on a default instance;
    applications that prefer explicit wiring can create their own and pass
    it to the integrations.
    """

    def __init__(self, name: str = "timebox_stack") -> None:
        self._var: contextvars.ContextVar[tuple[Budget, ...] | None] = (
            contextvars.ContextVar(name, default=None)
        )

    # ------------------------------------------------------------------
    # Raw stack operations
    # ------------------------------------------------------------------

    def peek(self) -> Budget | None:
        stack = self._var.get()
        return stack[-1] if stack else None

    def push(self, budget: Budget) -> Budget:
        self._var.set((self._var.get() or ()) + (budget,))
        return budget

    def pop(self) -> Budget | None:
        stack = self._var.get()
        if not stack:
            return None
        top = stack[-1]
        self._var.set(stack[:-1] or None)
        return top

    def depth(self) -> int:
        return len(self._var.get() or ())

    def clear_all(self) -> None:
        """Discard the whole stack for this context."""
        self._var.set(None)

    # ------------------------------------------------------------------
    # Checkpoint protocol
    # ------------------------------------------------------------------

    def current(self) -> Budget | None:
        """The Budget on top of this context's stack, if any."""
        return self.peek()

    def start(
        self,
        allowed_seconds: float,
        *,
        only: Any = None,
        exclude: Any = None,
    ) -> Budget:
        """
        Push a new Budget for this context and return it.

        If a Budget is already active, the new allowance is capped at the
        active Budget's remaining time. The cap is computed once, here.
        """
        requested = float(allowed_seconds)
        allowed = requested
        parent = self.current()
        if parent is not None:
            allowed = min(requested, parent.seconds_remaining)
        budget = Budget(allowed, only=only, exclude=exclude)
        self.push(budget)
        if allowed != requested:
            logger.debug(
                "started budget of %.3fs (requested %.3fs, capped by parent), depth=%d",
                allowed,
                requested,
                self.depth(),
            )
        else:
            logger.debug("started budget of %.3fs, depth=%d", allowed, self.depth())
        return budget

    def stop(self, budget: Budget | None = None) -> Budget | None:
        """
        Pop the top Budget.

        When `budget` is given, the top is only popped if it is that exact
        instance. Returns the `budget` argument as passed, whether or not a
        pop happened.
        """
        stack = self._var.get()
        if not stack:
            return None
        if budget is None or stack[-1] is budget:
            self.pop()
            logger.debug("stopped budget, depth=%d", self.depth())
        return budget

    @contextmanager
    def scope(
        self,
        allowed_seconds: float,
        *,
        only: Any = None,
        exclude: Any = None,
    ) -> Iterator[Budget]:
        """
        Context manager. Starts a Budget for the duration of the block.

            with stack.scope(3.0) as budget:
                ...

        The Budget is stopped by identity on every exit path.
        """
        budget = self.start(allowed_seconds, only=only, exclude=exclude)
        try:
            yield budget
        finally:
            self.stop(budget)

    def wrap(
        self,
        allowed_seconds: float,
        body: Callable[[Budget], R],
        *,
        only: Any = None,
        exclude: Any = None,
    ) -> R:
        """Call `body(budget)` inside a new Budget and return its result."""
        with self.scope(allowed_seconds, only=only, exclude=exclude) as budget:
            return body(budget)

    def checkpoint(self, name: Any = None) -> None:
        """
        Raise BudgetExceeded if the current Budget is exceeded.

        Does nothing when no Budget is active or when `name` is filtered out
        by the Budget's `only`/`exclude` options.
        """
        name = validate_name(name)
        budget = self.current()
        if budget is None:
            return
        budget.checkpoint(name)


default_stack = BudgetStack()
