"""In-memory record store for failed checkpoints."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any

from ._config import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExceededRecord:
    """
    Immutable record produced every time a checkpoint raises BudgetExceeded.

    Written to the bounded in-memory store regardless of tracer configuration.
    """

    checkpoint_name: str | None     # None for an unnamed checkpoint
    allowed_seconds: float
    elapsed_seconds: float

    def span_attributes(self) -> dict[str, Any]:
        return {f"timebox.{key}": value for key, value in asdict(self).items()}


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

# Bounded by the "max_records" config key; the oldest records fall off first
_records: deque[ExceededRecord] = deque(maxlen=get_config()["max_records"])


def record(entry: ExceededRecord) -> None:
    """Append a record to the in-memory store and hand it to the tracer, if any."""
    global _records
    limit = get_config()["max_records"]
    if _records.maxlen != limit:
        _records = deque(_records, maxlen=limit)
    _records.append(entry)
    tracer = get_config()["tracer"]
    if tracer is None:
        return
    try:
        tracer(entry.span_attributes())
    except Exception:
        # Tracer errors must not replace the BudgetExceeded being raised
        logger.warning("timebox tracer failed", exc_info=True)


def record_exceeded(error: Any) -> ExceededRecord:
    """Build and store the record for a BudgetExceeded about to be raised."""
    entry = ExceededRecord(
        checkpoint_name=error.checkpoint_name,
        allowed_seconds=error.allowed_seconds,
        elapsed_seconds=error.elapsed_seconds,
    )
    record(entry)
    return entry


def all_records() -> list[ExceededRecord]:
    """Return a snapshot of all records."""
    return list(_records)


def clear() -> None:
    """Clear all in-memory records (useful in tests)."""
    _records.clear()
