"""Time helpers.

Timers compare epoch seconds from an injectable clock so tests can move time
without sleeping. Timestamps written to the backend are ISO-8601 UTC.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], float]


def system_clock() -> float:
    return time.time()


def to_iso(ts: float) -> str:
    """Epoch seconds to an ISO-8601 UTC string."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def from_iso(value: str) -> float:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) to epoch seconds."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def start_of_local_day(ts: float) -> datetime:
    """Local midnight of the day containing ``ts``, as an aware datetime."""
    local = datetime.fromtimestamp(ts).astimezone()
    return local.replace(hour=0, minute=0, second=0, microsecond=0)
