"""Budget dataclass — an immutable time allowance checked at named checkpoints."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import StringConstraints, TypeAdapter, ValidationError

from . import trace
from ._config import get_config
from .exceptions import BudgetExceeded, InvalidCheckpointName

logger = logging.getLogger(__name__)

CheckpointName = Annotated[str, StringConstraints(strict=True, min_length=1)]

_name_adapter: TypeAdapter[str] = TypeAdapter(CheckpointName)


def validate_name(name: Any) -> str | None:
    """
    Return `name` as a plain checkpoint token, or None for an unnamed checkpoint.

    Enum members are reduced to their value. Raises InvalidCheckpointName for
    anything that is not a non-empty string.
    """
    if name is None:
        return None
    if isinstance(name, enum.Enum):
        name = name.value
    try:
        return str(_name_adapter.validate_python(name))
    except ValidationError:
        raise InvalidCheckpointName(name) from None


def normalize_names(names: Any) -> frozenset[str] | None:
    """Normalise an `only`/`exclude` option: a single name or an iterable of names."""
    if names is None:
        return None
    if isinstance(names, (str, enum.Enum)):
        return frozenset((validate_name(names),))
    if not isinstance(names, Iterable):
        raise InvalidCheckpointName(names)
    normalized = set()
    for name in names:
        token = validate_name(name)
        if token is None:
            raise InvalidCheckpointName(name)
        normalized.add(token)
    return frozenset(normalized)


@dataclass(frozen=True, eq=False)
class Budget:
    """
    Declares how many seconds a unit of work may take.

    The timer starts at construction. Nothing here is cached: elapsed and
    remaining time are recomputed from the clock on every read.

    `only` restricts which named checkpoints are enforced; `exclude` names
    checkpoints that are never enforced. Both accept a single name or an
    iterable of names.
    """

    allowed_seconds: float
    only: frozenset[str] | None = None
    exclude: frozenset[str] | None = None
    clock: Any = field(default=None, repr=False)

    start_instant: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        clock = self.clock if self.clock is not None else get_config()["clock"]
        object.__setattr__(self, "allowed_seconds", float(self.allowed_seconds))
        object.__setattr__(self, "only", normalize_names(self.only))
        object.__setattr__(self, "exclude", normalize_names(self.exclude))
        object.__setattr__(self, "clock", clock)
        object.__setattr__(self, "start_instant", clock.now())

    @property
    def elapsed_seconds(self) -> float:
        """Seconds since this Budget was created; always 0.0 while disabled."""
        if get_config()["disabled"] is True:
            return 0.0
        return self.clock.now() - self.start_instant

    @property
    def seconds_remaining(self) -> float:
        """Seconds left on the clock. Negative once the Budget is exceeded."""
        return self.allowed_seconds - self.elapsed_seconds

    @property
    def ms_remaining(self) -> float:
        return self.seconds_remaining * 1000

    @property
    def exceeded(self) -> bool:
        return self.seconds_remaining < 0

    def selected(self, name: str | None = None) -> bool:
        """
        Whether a checkpoint called `name` is enforced by this Budget.

        Rules apply in order: an unnamed checkpoint is always enforced once any
        `exclude` is configured; then `exclude` membership disables the
        checkpoint; then a configured `only` must contain the name.
        """
        if name is None and self.exclude is not None:
            return True
        if self.exclude is not None and name in self.exclude:
            return False
        if self.only is not None and name not in self.only:
            return False
        return True

    def checkpoint(self, name: Any = None) -> None:
        """Raise BudgetExceeded if this Budget is exceeded and `name` is selected."""
        name = validate_name(name)
        if not self.selected(name):
            return
        if self.exceeded:
            error = BudgetExceeded(self, checkpoint_name=name)
            logger.info(
                "checkpoint %s failed: allowed=%.3fs elapsed=%.3fs",
                name or "<unnamed>",
                error.allowed_seconds,
                error.elapsed_seconds,
            )
            trace.record_exceeded(error)
            raise error
