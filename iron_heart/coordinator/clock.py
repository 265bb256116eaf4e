"""
Session Clock
Timestamps for status updates published during one emission session
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class SessionClock:
    """
    Clock shared by every source of a session.

    Timestamps are UTC and strictly increasing, so charts fed from status
    updates never see two points at the same instant even when a burst of
    updates lands within the clock resolution.
    """

    def __init__(self):
        self.started_at = datetime.now(timezone.utc)
        self._started_monotonic = time.monotonic()
        self._last_timestamp: Optional[datetime] = None
        self._call_count = 0

        logger.info(f"Session clock started at {self.started_at.isoformat()}")

    def now(self) -> datetime:
        """
        Current UTC timestamp, strictly after the previous one returned.

        Returns:
            datetime with microsecond precision.
        """
        current_time = datetime.now(timezone.utc)
        if self._last_timestamp and current_time <= self._last_timestamp:
            current_time = self._last_timestamp + timedelta(microseconds=1)

        self._last_timestamp = current_time
        self._call_count += 1
        return current_time

    def elapsed(self) -> float:
        """Seconds since the session started (monotonic)."""
        return time.monotonic() - self._started_monotonic

    def get_stats(self) -> dict:
        return {
            'started_at': self.started_at.isoformat(),
            'elapsed_s': round(self.elapsed(), 3),
            'timestamps_issued': self._call_count,
        }

    def __repr__(self):
        return f"<SessionClock(calls={self._call_count})>"
