"""Shared utilities: clock, time helpers, locking, events and logging setup."""

from growengine.utils.clock import Clock, ManualClock, SystemClock
from growengine.utils.event_bus import EventBus

__all__ = ["Clock", "EventBus", "ManualClock", "SystemClock"]
