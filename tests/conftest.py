"""Shared fixtures: every test starts with default config, an empty stack and no records."""

from __future__ import annotations

import pytest

import timebox
from timebox._config import reset_config
from timebox.scope import default_stack


@pytest.fixture(autouse=True)
def _reset_timebox():
    reset_config()
    default_stack.clear_all()
    timebox.clear_traces()
    yield
    reset_config()
    default_stack.clear_all()
    timebox.clear_traces()


@pytest.fixture
def clock() -> timebox.ManualClock:
    """A frozen clock installed as the timebox clock; move it with advance()."""
    manual = timebox.ManualClock(start=100.0)
    timebox.configure(clock=manual)
    return manual
