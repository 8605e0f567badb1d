"""
Clock abstraction.

Every time-dependent decision in the engine reads an injected clock, so
tests and simulations can drive the control loops with virtual time instead
of waiting on real timers.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from typing import Protocol

from growengine.utils.time import ensure_aware


class Clock(Protocol):
    def now(self) -> datetime:
        """Current wall-clock time (timezone-aware)."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, used for elapsed-time checks."""
        ...


class SystemClock:
    """Real time: local-aware wall clock and time.monotonic()."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """
    Virtual clock that only moves when told to.

    Usage:
        clock = ManualClock(datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc))
        clock.advance(60)
    """

    def __init__(self, start: datetime | None = None):
        self._lock = threading.Lock()
        self._now = ensure_aware(start) if start else datetime.now().astimezone()
        self._monotonic = 0.0

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float) -> datetime:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            self._monotonic += seconds
            return self._now

    def set(self, moment: datetime) -> None:
        """Jump to ``moment``; the monotonic counter follows forward jumps only."""
        moment = ensure_aware(moment)
        with self._lock:
            delta = (moment - self._now).total_seconds()
            if delta > 0:
                self._monotonic += delta
            self._now = moment
