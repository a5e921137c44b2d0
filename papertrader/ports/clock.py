"""Clock Port Interface.

Contract: Provides the current UTC timestamp used to stamp trade records.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return current UTC time (datetime, tz-aware).
        Should be monotonic non-decreasing within a session.
        """
        ...


class SystemClock:
    """Clock adapter that returns the current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
