"""@timeboxed decorator for request handlers and other entry points."""

from __future__ import annotations

import dataclasses
import functools
import inspect
from typing import Any, Callable

from ..scope import BudgetStack, default_stack


@dataclasses.dataclass(frozen=True)
class _Rule:
    seconds: float
    only: Any = None
    exclude: Any = None
    when: Callable[..., bool] | None = None

    def applies(self, args: tuple, kwargs: dict) -> bool:
        return self.when is None or bool(self.when(*args, **kwargs))


def timeboxed(
    seconds: float,
    *,
    only: Any = None,
    exclude: Any = None,
    when: Callable[..., bool] | None = None,
    stack: BudgetStack | None = None,
) -> Callable:
    """
    Run the decorated handler inside a Budget of `seconds`.

    Works on plain functions and `async def` handlers. `when`, if given, is
    called with the handler's arguments and the Budget only applies when it
    returns True.

    Can be stacked to configure different budgets for various conditions. The
    last applied (outermost) decorator whose condition matches wins; the
    others are skipped for that call:

        @timeboxed(7, when=lambda request: request.user.is_staff)
        @timeboxed(3)
        async def show(request): ...
    """
    rule = _Rule(seconds=seconds, only=only, exclude=exclude, when=when)
    budget_stack = stack if stack is not None else default_stack

    def decorator(fn: Callable) -> Callable:
        # Only a direct @timeboxed wrapper folds; wrappers copied by other
        # decorators through functools.wraps nest normally
        if getattr(fn, "_timebox_wrapper", None) is fn:
            target = fn._timebox_target  # type: ignore[attr-defined]
            rules: tuple[_Rule, ...] = (rule,) + fn._timebox_rules  # type: ignore[attr-defined]
        else:
            target = fn
            rules = (rule,)

        def _select(args: tuple, kwargs: dict) -> _Rule | None:
            return next((r for r in rules if r.applies(args, kwargs)), None)

        if inspect.iscoroutinefunction(target):

            @functools.wraps(target)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                chosen = _select(args, kwargs)
                if chosen is None:
                    return await target(*args, **kwargs)
                with budget_stack.scope(
                    chosen.seconds, only=chosen.only, exclude=chosen.exclude
                ):
                    return await target(*args, **kwargs)

        else:

            @functools.wraps(target)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                chosen = _select(args, kwargs)
                if chosen is None:
                    return target(*args, **kwargs)
                with budget_stack.scope(
                    chosen.seconds, only=chosen.only, exclude=chosen.exclude
                ):
                    return target(*args, **kwargs)

        wrapper._timebox_target = target  # type: ignore[attr-defined]
        wrapper._timebox_rules = rules  # type: ignore[attr-defined]
        wrapper._timebox_wrapper = wrapper  # type: ignore[attr-defined]
        return wrapper

    return decorator
