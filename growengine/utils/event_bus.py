"""
Lightweight EventBus owned by the engine.

Key invariants (enforced by call sites + tests):
  - Event topics come from growengine.enums.EngineEvent.
  - Payloads are dataclasses / Pydantic models from growengine.schemas.events.
  - Subscribers always receive a plain dict payload.
  - With worker_count=0 delivery happens synchronously inside publish().
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from dataclasses import asdict, is_dataclass
from enum import Enum
from queue import Full, Queue
from typing import Any, Callable

from pydantic import BaseModel

from growengine.enums import EngineEvent

logger = logging.getLogger(__name__)

# Drop warning configuration
_DROP_WARNING_THRESHOLD = 10  # Log summary every N drops
_DROP_WARNING_INTERVAL_SECONDS = 60  # Minimum seconds between drop summaries

_STOP = object()


class EventBus:
    """
    Routes engine events to subscribers.

    One instance per engine; publishers and subscribers share it by handle.
    """

    def __init__(self, queue_size: int = 1024, worker_count: int = 2) -> None:
        self.subscribers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self.lock = threading.Lock()
        self._queue_size = int(queue_size)
        self._worker_pool_size = max(0, int(worker_count))
        self._queue: Queue = Queue(maxsize=self._queue_size)
        self._workers: list[threading.Thread] = []
        self._workers_started = False
        self._published = 0
        self._dropped_events = 0
        self._drops_by_event: dict[str, int] = defaultdict(int)
        self._drops_since_last_warning = 0
        self._last_drop_warning_time = 0.0

    @property
    def synchronous(self) -> bool:
        return self._worker_pool_size == 0

    def _start_workers(self) -> None:
        """Spin up a small worker pool to avoid unbounded thread creation."""
        with self.lock:
            if self._workers_started:
                return
            for index in range(self._worker_pool_size):
                worker = threading.Thread(target=self._worker_loop, daemon=True, name=f"EventBus-{index}")
                worker.start()
                self._workers.append(worker)
            self._workers_started = True
        logger.info(
            "EventBus workers started (pool=%s queue=%s)",
            self._worker_pool_size,
            self._queue_size,
        )

    def subscribe(self, event_name: EngineEvent | str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Subscribes a callback function to an event.

        Args:
            event_name: The enum topic (preferred) or raw string.
            callback: Function to call when the event occurs.

        Returns:
            A callable that removes the subscription.
        """
        name = event_name.value if isinstance(event_name, Enum) else event_name
        with self.lock:
            self.subscribers[name].append(callback)

        def unsubscribe() -> None:
            with self.lock:
                callbacks = self.subscribers.get(name, [])
                try:
                    callbacks.remove(callback)
                except ValueError:
                    return

        return unsubscribe

    def _worker_loop(self) -> None:
        """Worker thread loop to process events from the queue."""
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                event_name, callback, payload = item
                self._deliver(event_name, callback, payload)
            finally:
                self._queue.task_done()

    @staticmethod
    def _deliver(event_name: str, callback: Callable[[Any], None], payload: Any) -> None:
        try:
            callback(payload)
        except Exception as exc:
            logger.error("Error in callback for event %s: %s", event_name, exc)

    def publish(self, event_name: EngineEvent | str, data: Any | None = None) -> None:
        """
        Publishes an event to every subscribed callback.

        Args:
            event_name: The enum topic (preferred) or raw string.
            data: Payload object (Pydantic model, dataclass, or dict/primitive).
        """
        name = event_name.value if isinstance(event_name, Enum) else event_name

        # Normalize payload for subscribers: they always receive a dict or primitive.
        if isinstance(data, BaseModel):
            payload: Any = data.model_dump(mode="json")
        elif is_dataclass(data) and not isinstance(data, type):
            payload = asdict(data)
        else:
            payload = data

        with self.lock:
            callbacks = list(self.subscribers.get(name, []))
            self._published += 1

        if self.synchronous:
            for callback in callbacks:
                self._deliver(name, callback, payload)
            return

        if not self._workers_started:
            self._start_workers()

        for callback in callbacks:
            try:
                self._queue.put_nowait((name, callback, payload))
            except Full:
                self._record_drop(name)
                break

    def _record_drop(self, event_name: str) -> None:
        """Record a dropped event and log periodic warnings."""
        self._dropped_events += 1
        self._drops_by_event[event_name] += 1
        self._drops_since_last_warning += 1

        now = time.monotonic()
        should_warn = (
            self._drops_since_last_warning >= _DROP_WARNING_THRESHOLD
            and (now - self._last_drop_warning_time) >= _DROP_WARNING_INTERVAL_SECONDS
        )
        if should_warn:
            top_drops = sorted(self._drops_by_event.items(), key=lambda x: x[1], reverse=True)[:5]
            logger.warning(
                "EventBus dropping events! queue_size=%d, total_dropped=%d, recent_drops=%d, top_dropped_events=[%s]. "
                "Consider increasing GROWENGINE_EVENTBUS_QUEUE_SIZE or reducing event volume.",
                self._queue_size,
                self._dropped_events,
                self._drops_since_last_warning,
                ", ".join(f"{k}:{v}" for k, v in top_drops),
            )
            self._drops_since_last_warning = 0
            self._last_drop_warning_time = now

    def drain(self) -> None:
        """Block until every queued event has been delivered."""
        if not self.synchronous and self._workers_started:
            self._queue.join()

    def shutdown(self) -> None:
        """Stop the worker pool after the queued events are delivered."""
        with self.lock:
            if not self._workers_started:
                return
            workers = list(self._workers)
            self._workers.clear()
            self._workers_started = False
        for _ in workers:
            self._queue.put(_STOP)
        for worker in workers:
            worker.join(timeout=5.0)

    def get_metrics(self) -> dict[str, Any]:
        """Return lightweight metrics for status reporting."""
        top_drops = sorted(self._drops_by_event.items(), key=lambda x: x[1], reverse=True)[:5]
        return {
            "published": self._published,
            "queue_depth": self._queue.qsize(),
            "queue_size": self._queue_size,
            "worker_count": self._worker_pool_size,
            "dropped_events": self._dropped_events,
            "top_dropped_events": dict(top_drops),
        }
