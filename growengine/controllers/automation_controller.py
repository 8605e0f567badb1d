"""
ControllerRegistry: exactly one AutomationController per (room, domain).

Controllers are created lazily on first use and never deleted. Every
mutation of a controller happens while holding its key lock, so each
(room, domain) pair has a single writer even when loops interleave.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from growengine.domain.control import AutomationController
from growengine.enums import AutomationDomain
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.concurrency import KeyedLocks, synchronized

logger = logging.getLogger(__name__)


class ControllerRegistry:
    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._controllers: dict[tuple[str, AutomationDomain], AutomationController] = {}
        self._key_locks = KeyedLocks()
        self._disabled_rooms: set[str] = set()

    @synchronized
    def get(self, room_id: str, domain: AutomationDomain) -> AutomationController:
        """Return the controller for a key, creating it on first use."""
        key = (room_id, AutomationDomain(domain))
        controller = self._controllers.get(key)
        if controller is None:
            controller = AutomationController(
                room_id=room_id,
                domain=key[1],
                created_at=self.clock.now(),
                is_enabled=room_id not in self._disabled_rooms,
            )
            self._controllers[key] = controller
            logger.debug("Created controller %s/%s", room_id, key[1].value)
        return controller

    def lock_for(self, room_id: str, domain: AutomationDomain) -> threading.RLock:
        return self._key_locks.get((room_id, AutomationDomain(domain)))

    @contextmanager
    def acquire(self, room_id: str, domain: AutomationDomain) -> Iterator[AutomationController]:
        """Hold the key lock and yield the controller."""
        with self.lock_for(room_id, domain):
            yield self.get(room_id, domain)

    @synchronized
    def set_room_enabled(self, room_id: str, enabled: bool) -> None:
        if enabled:
            self._disabled_rooms.discard(room_id)
        else:
            self._disabled_rooms.add(room_id)
        for (controller_room, _domain), controller in self._controllers.items():
            if controller_room == room_id:
                controller.is_enabled = enabled
        logger.info("Automation %s for room %s", "enabled" if enabled else "disabled", room_id)

    @synchronized
    def is_room_enabled(self, room_id: str) -> bool:
        return room_id not in self._disabled_rooms

    @synchronized
    def controllers_for_room(self, room_id: str) -> list[AutomationController]:
        return [c for (r, _), c in self._controllers.items() if r == room_id]

    @synchronized
    def all_controllers(self) -> list[AutomationController]:
        return list(self._controllers.values())

    @synchronized
    def room_ids(self) -> set[str]:
        return {room_id for room_id, _ in self._controllers}

    def reset(self, room_id: str, domain: AutomationDomain) -> None:
        with self.acquire(room_id, domain) as controller:
            controller.reset_counters()

    def snapshot(self, room_id: str | None = None) -> dict[str, Any]:
        """Aggregate counters, for one room or for every room."""
        now = self.clock.now()
        controllers = self.controllers_for_room(room_id) if room_id is not None else self.all_controllers()

        total_actions = sum(c.total_actions for c in controllers)
        error_count = sum(c.error_count for c in controllers)
        attempts = total_actions + error_count
        return {
            "room_id": room_id,
            "total_actions": total_actions,
            "error_count": error_count,
            "error_rate": error_count / attempts if attempts else 0.0,
            "uptime_seconds": max((c.uptime_seconds(now) for c in controllers), default=0.0),
            "controllers": [c.to_dict(now) for c in controllers],
            "timestamp": now.isoformat(),
        }
