"""Global timebox configuration."""

from __future__ import annotations

from typing import Any

from .clock import default_clock

_DEFAULT_CLOCK = default_clock()

_config: dict[str, Any] = {
    "clock": _DEFAULT_CLOCK,  # chosen once at import; ManualClock in tests
    "disabled": False,        # True → every Budget reports zero elapsed time
    "tracer": None,           # None = no export of exceeded checkpoints
    "max_records": 1000,      # oldest records are dropped past this many
}


def configure(
    clock: Any = None,
    disabled: bool | None = None,
    tracer: Any = None,
    max_records: int | None = None,
) -> None:
    """
    Set global timebox configuration.

    Configuration is global and set once at startup (or per test). Budgets
    capture the clock at construction, so swapping the clock only affects
    Budgets started afterwards.

    `max_records` caps the in-memory store of exceeded checkpoints.
    """
    if clock is not None:
        if not callable(getattr(clock, "now", None)):
            raise TypeError(f"clock must provide a now() method, got {clock!r}")
        _config["clock"] = clock
    if disabled is not None:
        _config["disabled"] = disabled
    if tracer is not None:
        _config["tracer"] = tracer
    if max_records is not None:
        if isinstance(max_records, bool) or not isinstance(max_records, int) or max_records < 0:
            raise ValueError(f"max_records must be a non-negative int, got {max_records!r}")
        _config["max_records"] = max_records


def get_config() -> dict[str, Any]:
    """Return the current configuration dict (mutable reference)."""
    return _config


def reset_config() -> None:
    """Restore the import-time defaults (useful in tests)."""
    _config["clock"] = _DEFAULT_CLOCK
    _config["disabled"] = False
    _config["tracer"] = None
    _config["max_records"] = 1000


def disable() -> None:
    """
    Freeze every Budget at zero elapsed time. Useful for tests and debugging.

    Should not be used in production.
    """
    _config["disabled"] = True


def enable() -> None:
    """Resume normal time accounting after `disable()`."""
    _config["disabled"] = False


def disabled() -> bool:
    """True if timebox was disabled with `disable()`."""
    return _config["disabled"] is True
