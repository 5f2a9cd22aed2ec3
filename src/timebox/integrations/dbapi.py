"""DB-API 2.0 wrappers that enforce the current Budget on every query."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Iterator

from ..scope import BudgetStack, default_stack
from ..sql import inject

logger = logging.getLogger(__name__)


class TimeboxCursor:
    """
    Wraps a DB-API cursor.

    Inside a Budget that selects the `db` checkpoint, `execute()` and
    `executemany()` first run the checkpoint (the query is never sent once
    the Budget is exceeded) and then add a MAX_EXECUTION_TIME hint with the
    remaining milliseconds to SELECT statements. Everything else is
    delegated to the wrapped cursor.
    """

    def __init__(
        self,
        cursor: Any,
        *,
        stack: BudgetStack | None = None,
        checkpoint_name: str = "db",
    ) -> None:
        self._cursor = cursor
        self._stack = stack if stack is not None else default_stack
        self.checkpoint_name = checkpoint_name

    @property
    def cursor(self) -> Any:
        return self._cursor

    def prepare(self, sql: str) -> str:
        """Checkpoint and return `sql` as it will be sent to the server."""
        budget = self._stack.current()
        if budget is None or not budget.selected(self.checkpoint_name):
            return sql

        budget.checkpoint(self.checkpoint_name)
        # MAX_EXECUTION_TIME(0) means "no limit" to MySQL
        ms = max(1, math.ceil(budget.ms_remaining))
        rewritten = inject(sql, ms)
        if rewritten is not sql:
            logger.debug("added MAX_EXECUTION_TIME(%d) to query", ms)
        return rewritten

    def execute(self, operation: str, parameters: Any = None) -> Any:
        operation = self.prepare(operation)
        if parameters is None:
            return self._cursor.execute(operation)
        return self._cursor.execute(operation, parameters)

    def executemany(self, operation: str, seq_of_parameters: Iterable[Any]) -> Any:
        return self._cursor.executemany(self.prepare(operation), seq_of_parameters)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._cursor)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cursor, name)


class TimeboxConnection:
    """Wraps a DB-API connection so every cursor it hands out is a TimeboxCursor."""

    def __init__(
        self,
        connection: Any,
        *,
        stack: BudgetStack | None = None,
        checkpoint_name: str = "db",
    ) -> None:
        self._connection = connection
        self._stack = stack if stack is not None else default_stack
        self.checkpoint_name = checkpoint_name

    @property
    def connection(self) -> Any:
        return self._connection

    def cursor(self, *args: Any, **kwargs: Any) -> TimeboxCursor:
        return TimeboxCursor(
            self._connection.cursor(*args, **kwargs),
            stack=self._stack,
            checkpoint_name=self.checkpoint_name,
        )

    def __enter__(self) -> TimeboxConnection:
        self._connection.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> Any:
        return self._connection.__exit__(*exc_info)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._connection, name)
