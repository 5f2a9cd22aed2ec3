"""Timebox exception hierarchy."""

from __future__ import annotations

from typing import Any


class TimeboxError(Exception):
    """Base class for all timebox errors."""


class BudgetExceeded(TimeboxError):
    """Raised at a checkpoint when the current Budget has no time remaining."""

    def __init__(self, budget: Any, checkpoint_name: str | None = None) -> None:
        self.budget = budget
        self.checkpoint_name = checkpoint_name
        # Snapshot at raise time; the Budget itself keeps counting
        self.allowed_seconds: float = budget.allowed_seconds
        self.elapsed_seconds: float = budget.elapsed_seconds
        super().__init__(
            "Budget exceeded: "
            + _format_meta(
                allowed_seconds=self.allowed_seconds,
                elapsed_seconds=self.elapsed_seconds,
            )
        )


class InvalidCheckpointName(TimeboxError, TypeError):
    """Raised when a checkpoint name is neither None nor a non-empty string."""

    def __init__(self, name: Any) -> None:
        self.name = name
        super().__init__(
            f"Invalid checkpoint name {name!r}: expected None or a non-empty str"
        )


def _format_meta(**meta: Any) -> str:
    return " ".join(f"{key}={value}" for key, value in meta.items())
